"""Example: fire a CRM event at the Post-Demo Follow-Up preset.

Requires ``OPENAI_API_KEY`` for the AI node. Set ``BREEZEFLOW_DATABASE_URL``
(e.g. ``sqlite://breezeflow.db``) to keep the suspended run for
``scheduler_example.py``.
"""

import asyncio

from breezeflow import ExecutionEngine, TriggerRouter, WorkflowCatalog, get_preset, get_store
from breezeflow.collaborators import get_action_dispatcher, get_ai_caller
from breezeflow.contracts import WorkflowStatus


async def draft_email(config):
    print(f"📧 Draft: {config.get('subject')}\n{config.get('body')}")
    return {"draft_id": "draft-1"}


async def create_task(config):
    print(f"✅ Task: {config.get('title')} (due in {config.get('dueIn')}h)")
    return {"task_id": "task-1"}


async def main():
    store = get_store()
    catalog = WorkflowCatalog(store)

    # Install the preset and switch it on
    workflow = get_preset("post-demo-followup").instantiate(workflow_id="post-demo", workspace_id="acme")
    await catalog.save(workflow)
    await catalog.set_status(workflow.id, WorkflowStatus.ACTIVE)

    actions = get_action_dispatcher()
    actions.register("draft_email", draft_email)
    actions.register("create_task", create_task)
    engine = ExecutionEngine(store=store, ai=get_ai_caller(), actions=actions)

    execution_ids = await TriggerRouter(engine).fire(
        "deal_stage_changed",
        {"deal": {"company": "Acme Corp", "call_notes": "Wants SSO. Decision by Friday."}},
        workspace_id="acme",
    )
    for execution_id in execution_ids:
        execution = await engine.get_execution(execution_id)
        print(f"📋 Execution {execution.id}: {execution.status.value}")
        print(f"⏰ Resumes at: {execution.resume_at}")


if __name__ == "__main__":
    asyncio.run(main())
