"""Bundled workflow templates users can start from."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .contracts import TriggerType, Workflow, WorkflowStatus
from .graph import parse_workflow


class WorkflowPreset(BaseModel):
    """A ready-made graph plus catalogue metadata."""

    id: str
    name: str
    description: str
    category: str
    icon: Optional[str] = None
    trigger_type: TriggerType
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)

    def instantiate(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
    ) -> Workflow:
        """Build a new draft workflow from this preset."""
        return parse_workflow(
            {
                "id": workflow_id or str(uuid.uuid4()),
                "workspace_id": workspace_id,
                "user_id": user_id,
                "name": self.name,
                "description": self.description,
                "status": WorkflowStatus.DRAFT.value,
                "trigger_type": self.trigger_type.value,
                "nodes": copy.deepcopy(self.nodes),
                "edges": copy.deepcopy(self.edges),
                "is_template": False,
            }
        )


def _node(node_id: str, node_type: str, y: int, data: Dict[str, Any], x: int = 250) -> Dict[str, Any]:
    return {"id": node_id, "type": node_type, "position": {"x": x, "y": y}, "data": data}


def _edge(edge_id: str, source: str, target: str, handle: Optional[str] = None) -> Dict[str, Any]:
    edge = {"id": edge_id, "source": source, "target": target}
    if handle:
        edge["sourceHandle"] = handle
    return edge


PRESETS: List[WorkflowPreset] = [
    WorkflowPreset(
        id="inbound-concierge",
        name="Inbound Concierge",
        description="Speed to Lead: Analyze new leads and draft personalized outreach",
        category="lead_management",
        icon="UserPlus",
        trigger_type=TriggerType.CONTACT_CREATED,
        nodes=[
            _node("trigger-1", "trigger", 50, {
                "label": "New Lead Created",
                "triggerType": "contact_created",
            }),
            _node("ai-1", "ai_processor", 180, {
                "label": "Analyze Lead",
                "instruction": (
                    "Analyze the lead's job title and industry. Generate a personalized hook "
                    "that references their role and potential pain points. "
                    "Keep it under 2 sentences."
                ),
                "model": "gpt-4o-mini",
                "contextSource": "contact",
                "outputVariable": "personalized_hook",
            }),
            _node("action-1", "action", 330, {
                "label": "Draft Welcome Email",
                "actionType": "draft_email",
                "actionConfig": {
                    "subject": "Quick question about {{contact.company}}",
                    "body": (
                        "Hi {{contact.first_name}},\n\n{{ai-1.output}}\n\n"
                        "Would you have 15 minutes this week to chat?\n\nBest,\n{{user.name}}"
                    ),
                },
            }),
        ],
        edges=[_edge("e1-2", "trigger-1", "ai-1"), _edge("e2-3", "ai-1", "action-1")],
    ),
    WorkflowPreset(
        id="meeting-prep",
        name="Meeting Prep Briefer",
        description="Get an AI-generated summary before every meeting",
        category="productivity",
        icon="Calendar",
        trigger_type=TriggerType.MEETING_SCHEDULED,
        nodes=[
            _node("trigger-1", "trigger", 50, {
                "label": "Meeting Scheduled",
                "triggerType": "meeting_scheduled",
                "triggerConditions": {"timeBeforeMeeting": 60},
            }),
            _node("ai-1", "ai_processor", 180, {
                "label": "Generate Brief",
                "instruction": (
                    "Summarize the last 10 email interactions with this contact. Include their "
                    "LinkedIn background if available. Highlight any objections or concerns "
                    "raised. Format as bullet points."
                ),
                "model": "gpt-4o",
                "contextSource": "meeting_participants",
                "outputVariable": "meeting_brief",
            }),
            _node("action-1", "action", 330, {
                "label": "Send Brief to Rep",
                "actionType": "send_notification",
                "actionConfig": {
                    "title": "Meeting Brief: {{meeting.title}}",
                    "body": "{{ai-1.output}}",
                    "channel": "email",
                },
            }),
        ],
        edges=[_edge("e1-2", "trigger-1", "ai-1"), _edge("e2-3", "ai-1", "action-1")],
    ),
    WorkflowPreset(
        id="objection-handler",
        name="Objection Handler",
        description="Detect objections in emails and suggest responses",
        category="communication",
        icon="Mail",
        trigger_type=TriggerType.EMAIL_RECEIVED,
        nodes=[
            _node("trigger-1", "trigger", 50, {
                "label": "Email Received",
                "triggerType": "email_received",
            }),
            _node("ai-1", "ai_processor", 180, {
                "label": "Classify Intent",
                "instruction": (
                    "Classify this email's intent. Categories: positive_interest, question, "
                    "objection_price, objection_timing, objection_competitor, not_interested, "
                    "other. Return JSON with {category, confidence, reasoning}."
                ),
                "model": "gpt-4o-mini",
                "contextSource": "email_body",
                "outputVariable": "intent_classification",
            }),
            _node("condition-1", "condition", 330, {
                "label": "Is Objection?",
                "conditionField": "intent_classification.category",
                "conditionOperator": "contains",
                "conditionValue": "objection",
            }),
            _node("ai-2", "ai_processor", 480, {
                "label": "Generate Response",
                "instruction": (
                    "Based on the objection type, draft a professional counter-argument that "
                    "addresses the concern while maintaining rapport. Use empathy first, then "
                    "provide value."
                ),
                "model": "gpt-4o",
                "contextSource": "email_body,intent_classification",
                "outputVariable": "counter_argument",
            }, x=100),
            _node("action-1", "action", 630, {
                "label": "Draft Response",
                "actionType": "draft_email",
                "actionConfig": {
                    "inReplyTo": "{{email.id}}",
                    "body": "{{ai-2.output}}",
                },
            }, x=100),
        ],
        edges=[
            _edge("e1-2", "trigger-1", "ai-1"),
            _edge("e2-3", "ai-1", "condition-1"),
            _edge("e3-4", "condition-1", "ai-2", handle="yes"),
            _edge("e4-5", "ai-2", "action-1"),
        ],
    ),
    WorkflowPreset(
        id="post-demo-followup",
        name="Post-Demo Follow-Up",
        description="Auto-draft follow-up emails after demos with action items",
        category="deal_acceleration",
        icon="Target",
        trigger_type=TriggerType.DEAL_STAGE_CHANGED,
        nodes=[
            _node("trigger-1", "trigger", 50, {
                "label": "Deal → Proposal",
                "triggerType": "deal_stage_changed",
                "triggerConditions": {"toStage": "proposal"},
            }),
            _node("delay-1", "delay", 180, {
                "label": "Wait 2 Hours",
                "delayAmount": 2,
                "delayUnit": "hours",
            }),
            _node("ai-1", "ai_processor", 310, {
                "label": "Extract Action Items",
                "instruction": (
                    "Read the call notes from the most recent meeting. Extract: 1) Key decisions "
                    "made, 2) Action items for us, 3) Action items for the prospect, 4) Any "
                    "concerns raised. Format as a professional follow-up email."
                ),
                "model": "gpt-4o",
                "contextSource": "deal.call_notes",
                "outputVariable": "followup_email",
            }),
            _node("action-1", "action", 460, {
                "label": "Draft Follow-Up",
                "actionType": "draft_email",
                "actionConfig": {
                    "subject": "Great chat! Next steps for {{deal.company}}",
                    "body": "{{ai-1.output}}",
                },
            }),
            _node("action-2", "action", 590, {
                "label": "Create Task",
                "actionType": "create_task",
                "actionConfig": {
                    "title": "Review & send follow-up for {{deal.company}}",
                    "dueIn": 24,
                    "priority": "high",
                },
            }),
        ],
        edges=[
            _edge("e1-2", "trigger-1", "delay-1"),
            _edge("e2-3", "delay-1", "ai-1"),
            _edge("e3-4", "ai-1", "action-1"),
            _edge("e4-5", "action-1", "action-2"),
        ],
    ),
]

_BY_ID = {preset.id: preset for preset in PRESETS}


def get_preset(preset_id: str) -> Optional[WorkflowPreset]:
    return _BY_ID.get(preset_id)


def list_presets(category: Optional[str] = None) -> List[WorkflowPreset]:
    if category is None:
        return list(PRESETS)
    return [preset for preset in PRESETS if preset.category == category]
