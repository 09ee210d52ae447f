"""
Incident and issue pipelines driven from chat buttons.

Both follow the same shape: validate -> update the tracker -> confirm in chat.
"""

from typing import Any

from ..core.pipeline import Pipeline, Step, WorkflowContext
from ..integrations.base import MessageContent
from ._common import collaborators, require_fields, utc_timestamp


def _validated(ctx: WorkflowContext, id_field: str, what: str) -> dict[str, Any]:
    data = ctx.input
    require_fields(data, [id_field, "user_id", "chat_id"], what)
    return {
        id_field: str(data[id_field]),
        "user_id": str(data["user_id"]),
        "chat_id": data["chat_id"],
        "timestamp": data.get("timestamp") or utc_timestamp(),
    }


# alert_acknowledgement


async def validate_ack_data(ctx: WorkflowContext) -> dict[str, Any]:
    return _validated(ctx, "incident_id", "acknowledgement data")


async def update_incident_status(ctx: WorkflowContext) -> dict[str, Any]:
    incidents = collaborators(ctx).require("incidents", "update_incident_status")
    ack = ctx.get("ack")
    return await incidents.acknowledge(ack["incident_id"], ack["user_id"], ack["timestamp"])


async def send_ack_confirmation(ctx: WorkflowContext):
    gateway = collaborators(ctx).require("messaging", "send_ack_confirmation")
    ack = ctx.get("ack")
    text = f"Incident {ack['incident_id']} acknowledged by {ack['user_id']}"
    return await gateway.send(ack["chat_id"], MessageContent(text=text))


ALERT_ACKNOWLEDGEMENT = Pipeline(
    name="alert_acknowledgement",
    id_prefix="alert_ack",
    steps=(
        Step("validate_ack_data", validate_ack_data, output_key="ack"),
        Step("update_incident_status", update_incident_status, output_key="incident_result"),
        Step("send_ack_confirmation", send_ack_confirmation, output_key="confirmation"),
    ),
    build_payload=lambda ctx: {
        "incident_result": ctx.get("incident_result"),
        "confirmation_sent": True,
    },
    description="Alert button -> incident acknowledged -> confirmation",
)


# issue_assignment


async def validate_assign_data(ctx: WorkflowContext) -> dict[str, Any]:
    return _validated(ctx, "issue_id", "assignment data")


async def update_issue_assignment(ctx: WorkflowContext) -> dict[str, Any]:
    issues = collaborators(ctx).require("issues", "update_issue_assignment")
    assignment = ctx.get("assignment")
    return await issues.assign(
        assignment["issue_id"], assignment["user_id"], assignment["timestamp"]
    )


async def send_assign_confirmation(ctx: WorkflowContext):
    gateway = collaborators(ctx).require("messaging", "send_assign_confirmation")
    assignment = ctx.get("assignment")
    text = f"Issue {assignment['issue_id']} assigned to {assignment['user_id']}"
    return await gateway.send(assignment["chat_id"], MessageContent(text=text))


ISSUE_ASSIGNMENT = Pipeline(
    name="issue_assignment",
    id_prefix="issue_assign",
    steps=(
        Step("validate_assign_data", validate_assign_data, output_key="assignment"),
        Step("update_issue_assignment", update_issue_assignment, output_key="issue_result"),
        Step("send_assign_confirmation", send_assign_confirmation, output_key="confirmation"),
    ),
    build_payload=lambda ctx: {"issue_result": ctx.get("issue_result"), "confirmation_sent": True},
    description="Issue button -> assignee updated -> confirmation",
)
