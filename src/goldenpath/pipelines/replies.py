"""Email reply pipeline: validate_reply_data -> generate_reply_draft -> send_email_reply."""

from typing import Any

from ..core.pipeline import Pipeline, Step, WorkflowContext
from ._common import collaborators, require_fields


async def validate_reply_data(ctx: WorkflowContext) -> dict[str, Any]:
    data = ctx.input
    require_fields(data, ["reply_to", "message_id", "reply_text"], "reply data")
    return {
        "reply_to": data["reply_to"],
        "message_id": data["message_id"],
        "reply_text": data["reply_text"],
        "subject": data.get("subject"),
    }


async def generate_reply_draft(ctx: WorkflowContext) -> str:
    """Draft through the drafter collaborator when present, else use the text as is."""
    reply = ctx.get("reply")
    drafter = collaborators(ctx).drafter
    if drafter is None:
        return reply["reply_text"]
    return await drafter.draft(reply["reply_to"], reply["message_id"], reply["reply_text"])


async def send_email_reply(ctx: WorkflowContext) -> dict[str, Any]:
    notifier = collaborators(ctx).require("notifier", "send_email_reply")
    reply = ctx.get("reply")
    subject = f"Re: {reply['subject']}" if reply["subject"] else "Re: your message"
    receipt = await notifier.send(reply["reply_to"], subject, ctx.get("draft"))
    return {
        "email_sent": receipt.delivered,
        "to": reply["reply_to"],
        "in_reply_to": reply["message_id"],
    }


EMAIL_REPLY_DRAFT = Pipeline(
    name="email_reply_draft",
    id_prefix="reply",
    steps=(
        Step("validate_reply_data", validate_reply_data, output_key="reply"),
        Step("generate_reply_draft", generate_reply_draft, output_key="draft"),
        Step("send_email_reply", send_email_reply, output_key="email_result"),
    ),
    build_payload=lambda ctx: {"email_result": ctx.get("email_result"), "draft": ctx.get("draft")},
    description="Chat reply -> drafted email -> sent email",
)
