"""Behaviour shared by every execution store backend."""

import asyncio
from datetime import timedelta

import pytest

from breezeflow.contracts import ExecutionStatus, WorkflowExecution
from breezeflow.errors import ClaimLost, StoreError
from breezeflow.persistence import InMemoryExecutionStore, SQLiteExecutionStore
from fakes import T0


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryExecutionStore()
    return SQLiteExecutionStore(tmp_path / "executions.db")


def _execution(**kwargs):
    defaults = {"workflow_id": "wf", "started_at": T0, "current_node_id": "trigger"}
    defaults.update(kwargs)
    return WorkflowExecution(**defaults)


@pytest.mark.asyncio
async def test_workflow_documents(repo):
    await repo.save_workflow("wf", {"id": "wf", "name": "First"})
    await repo.save_workflow("wf", {"id": "wf", "name": "Renamed"})
    await repo.save_workflow("other", {"id": "other", "name": "Other"})

    assert await repo.get_workflow("wf") == {"id": "wf", "name": "Renamed"}
    assert await repo.get_workflow("missing") is None
    assert sorted(doc["id"] for doc in await repo.list_workflows()) == ["other", "wf"]


@pytest.mark.asyncio
async def test_execution_roundtrip(repo):
    execution = _execution(trigger_data={"contact": {"name": "Ada"}})
    await repo.create_execution(execution)

    loaded = await repo.get_execution(execution.id)
    assert loaded == execution
    assert await repo.get_execution("missing") is None

    with pytest.raises(StoreError):
        await repo.create_execution(execution)


@pytest.mark.asyncio
async def test_claim_is_exclusive_until_released(repo):
    execution = _execution()
    await repo.create_execution(execution)

    first = await repo.load_by_claim(execution.id, "a", T0, 60)
    assert first is not None
    assert await repo.load_by_claim(execution.id, "b", T0, 60) is None

    await repo.release_claim(execution.id, "b")
    assert await repo.load_by_claim(execution.id, "b", T0, 60) is None

    await repo.release_claim(execution.id, "a")
    assert await repo.load_by_claim(execution.id, "b", T0, 60) is not None


@pytest.mark.asyncio
async def test_expired_claim_can_be_taken_over(repo):
    execution = _execution()
    await repo.create_execution(execution)
    assert await repo.load_by_claim(execution.id, "a", T0, 60) is not None
    assert await repo.load_by_claim(execution.id, "b", T0 + timedelta(seconds=61), 60) is not None

    execution.status = ExecutionStatus.RUNNING
    with pytest.raises(ClaimLost):
        await repo.save_execution(execution, "a")
    await repo.save_execution(execution, "b")


@pytest.mark.asyncio
async def test_concurrent_claims_have_one_winner(repo):
    execution = _execution()
    await repo.create_execution(execution)

    results = await asyncio.gather(
        *(repo.load_by_claim(execution.id, f"worker-{i}", T0, 60) for i in range(10))
    )
    assert sum(result is not None for result in results) == 1


@pytest.mark.asyncio
async def test_save_requires_claim(repo):
    execution = _execution()
    await repo.create_execution(execution)

    execution.status = ExecutionStatus.RUNNING
    with pytest.raises(ClaimLost):
        await repo.save_execution(execution, "a")

    claimed = await repo.load_by_claim(execution.id, "a", T0, 60)
    claimed.status = ExecutionStatus.RUNNING
    claimed.record_output("trigger", {"x": 1})
    await repo.save_execution(claimed, "a")

    stored = await repo.get_execution(execution.id)
    assert stored.status == ExecutionStatus.RUNNING
    assert stored.node_outputs == {"trigger": {"x": 1}}


@pytest.mark.asyncio
async def test_terminal_executions_cannot_be_claimed(repo):
    execution = _execution()
    await repo.create_execution(execution)
    claimed = await repo.load_by_claim(execution.id, "a", T0, 60)
    claimed.status = ExecutionStatus.COMPLETED
    claimed.current_node_id = None
    await repo.save_execution(claimed, "a")
    await repo.release_claim(execution.id, "a")

    assert await repo.load_by_claim(execution.id, "a", T0, 60) is None
    assert await repo.request_cancel(execution.id) is False


@pytest.mark.asyncio
async def test_due_for_resume(repo):
    pending = _execution()
    sleeping = _execution(status=ExecutionStatus.RUNNING, resume_at=T0 + timedelta(hours=2))
    awake = _execution(status=ExecutionStatus.RUNNING, resume_at=T0 - timedelta(minutes=1))
    waiting = _execution(status=ExecutionStatus.WAITING_APPROVAL)
    done = _execution(status=ExecutionStatus.COMPLETED, current_node_id=None)
    for execution in (pending, sleeping, awake, waiting, done):
        await repo.create_execution(execution)

    due = await repo.list_due_for_resume(T0, limit=10)
    assert set(due) == {pending.id, awake.id}
    assert len(await repo.list_due_for_resume(T0, limit=1)) == 1

    later = await repo.list_due_for_resume(T0 + timedelta(hours=3), limit=10)
    assert set(later) == {pending.id, awake.id, sleeping.id}

    # Claimed executions are not due.
    assert await repo.load_by_claim(awake.id, "a", T0, 60) is not None
    assert set(await repo.list_due_for_resume(T0, limit=10)) == {pending.id}


@pytest.mark.asyncio
async def test_due_only_claim_respects_resume_time(repo):
    sleeping = _execution(status=ExecutionStatus.RUNNING, resume_at=T0 + timedelta(hours=2))
    await repo.create_execution(sleeping)

    assert await repo.load_by_claim(sleeping.id, "a", T0, 60, due_only=True) is None
    claimed = await repo.load_by_claim(sleeping.id, "a", T0 + timedelta(hours=2), 60, due_only=True)
    assert claimed is not None
    assert claimed.resume_at == T0 + timedelta(hours=2)


@pytest.mark.asyncio
async def test_list_executions_newest_first(repo):
    first = _execution(started_at=T0)
    second = _execution(started_at=T0 + timedelta(minutes=1))
    third = _execution(started_at=T0 + timedelta(minutes=2))
    unrelated = _execution(workflow_id="other")
    for execution in (first, second, third, unrelated):
        await repo.create_execution(execution)

    listed = await repo.list_executions("wf")
    assert [execution.id for execution in listed] == [third.id, second.id, first.id]
    assert [execution.id for execution in await repo.list_executions("wf", 2)] == [third.id, second.id]


@pytest.mark.asyncio
async def test_cancel_flag(repo):
    execution = _execution()
    await repo.create_execution(execution)
    assert await repo.is_cancel_requested(execution.id) is False
    assert await repo.request_cancel(execution.id) is True
    assert await repo.is_cancel_requested(execution.id) is True
    assert await repo.request_cancel("missing") is False


@pytest.mark.asyncio
async def test_sqlite_state_survives_reopen(tmp_path):
    path = tmp_path / "executions.db"
    repo = SQLiteExecutionStore(path)
    execution = _execution(resume_at=T0 + timedelta(hours=1), node_outputs={"trigger": {"a": [1, 2]}})
    await repo.save_workflow("wf", {"id": "wf"})
    await repo.create_execution(execution)

    reopened = SQLiteExecutionStore(path)
    assert await reopened.get_execution(execution.id) == execution
    assert await reopened.get_workflow("wf") == {"id": "wf"}


@pytest.mark.asyncio
async def test_extend_claim_pushes_the_lease(repo):
    execution = _execution()
    await repo.create_execution(execution)
    assert await repo.load_by_claim(execution.id, "a", T0, 60) is not None

    await repo.extend_claim(execution.id, "a", T0 + timedelta(seconds=300))
    # The original 60s lease would have expired by now.
    assert execution.id not in await repo.list_due_for_resume(T0 + timedelta(seconds=120), 10)
    assert await repo.load_by_claim(execution.id, "b", T0 + timedelta(seconds=120), 60) is None
    assert await repo.load_by_claim(execution.id, "b", T0 + timedelta(seconds=301), 60) is not None

    with pytest.raises(ClaimLost):
        await repo.extend_claim(execution.id, "a", T0 + timedelta(seconds=900))
    with pytest.raises(ClaimLost):
        await repo.extend_claim("missing", "a", T0)


@pytest.mark.asyncio
async def test_delete_workflow_keeps_executions(repo):
    await repo.save_workflow("wf", {"id": "wf", "name": "First"})
    execution = _execution()
    await repo.create_execution(execution)

    assert await repo.delete_workflow("wf") is True
    assert await repo.get_workflow("wf") is None
    assert await repo.delete_workflow("wf") is False
    assert [item.id for item in await repo.list_executions("wf")] == [execution.id]


@pytest.mark.asyncio
async def test_sqlite_read_errors_become_store_errors(tmp_path):
    repo = SQLiteExecutionStore(tmp_path / "executions.db")
    repo._conn.execute("DROP TABLE executions")

    with pytest.raises(StoreError):
        await repo.get_execution("anything")
    with pytest.raises(StoreError):
        await repo.list_due_for_resume(T0, 10)
    with pytest.raises(StoreError):
        await repo.list_executions("wf")
