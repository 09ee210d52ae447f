"""
Review pipelines: inbound email -> review card, and review card callback -> action.

``email_to_review_request``
    process_email -> resolve_chat_id -> send_review_card -> store_mapping.
    Falls back to a plain notification when any step fails terminally.

``review_callback``
    validate_callback -> get_email_mapping -> execute_review_action ->
    send_confirmation -> send_email_reply (only when email replies are enabled
    and the mapping remembers the original sender).
"""

import email
from email import policy
from email.message import EmailMessage
from typing import Any

from ..core.errors import CorrelationNotFoundError, PipelineValidationError
from ..core.pipeline import Pipeline, Step, WorkflowContext
from ..integrations.base import MessageAction, MessageContent
from ..observability.logging import get_logger
from ._common import collaborators, require_fields

logger = get_logger(__name__)

SUMMARY_LENGTH = 200

REVIEW_ACTIONS = (
    MessageAction("Approve", "pr:approve"),
    MessageAction("Request changes", "pr:request_changes"),
    MessageAction("Comment", "pr:comment"),
)


def correlation_key(pr_id: Any) -> str:
    return f"pr{pr_id}"


def _part_content(message: EmailMessage, subtype: str) -> str:
    part = message.get_body(preferencelist=(subtype,))
    if part is None:
        return ""
    return str(part.get_content()).strip()


def parse_email(raw: str) -> dict[str, str]:
    """Extract subject, sender and bodies from a raw RFC 822 message."""
    message = email.message_from_string(raw, policy=policy.default)
    return {
        "subject": str(message["subject"] or "No Subject"),
        "sender": str(message["from"] or ""),
        "text": _part_content(message, "plain"),
        "html": _part_content(message, "html"),
    }


def summarize(text: str, limit: int = SUMMARY_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def build_review_card(email_context: dict[str, Any]) -> MessageContent:
    text = (
        f"Review requested: PR #{email_context['pr_id']}\n"
        f"From: {email_context['sender'] or 'unknown'}\n"
        f"Subject: {email_context['subject']}\n\n"
        f"{email_context['summary']}"
    )
    actions = tuple(
        MessageAction(a.label, f"{a.callback_data}:{email_context['pr_id']}")
        for a in REVIEW_ACTIONS
    )
    return MessageContent(text=text, actions=actions)


# email_to_review_request


async def process_email(ctx: WorkflowContext) -> dict[str, Any]:
    data = ctx.input
    require_fields(data, ["pr_id"], "email data")

    if data.get("raw_email"):
        parsed = parse_email(data["raw_email"])
    else:
        parsed = {
            "subject": data.get("subject") or "No Subject",
            "sender": data.get("from", ""),
            "text": data.get("body", ""),
            "html": "",
        }

    return {
        **parsed,
        "pr_id": str(data["pr_id"]),
        "message_id": data.get("message_id"),
        "meta": data.get("meta", {}),
        "summary": summarize(parsed["text"]),
        "processed": True,
    }


async def resolve_chat_id(ctx: WorkflowContext) -> str:
    store = collaborators(ctx).require("correlation_store", "resolve_chat_id")
    key = correlation_key(ctx.get("email")["pr_id"])
    record = await store.get(key)
    if record is None:
        raise CorrelationNotFoundError(key)
    return record.target


async def send_review_card(ctx: WorkflowContext):
    gateway = collaborators(ctx).require("messaging", "send_review_card")
    return await gateway.send(ctx.get("chat_id"), build_review_card(ctx.get("email")))


async def store_mapping(ctx: WorkflowContext) -> dict[str, Any]:
    store = collaborators(ctx).require("correlation_store", "store_mapping")
    email_context = ctx.get("email")
    key = correlation_key(email_context["pr_id"])
    await store.put(
        key,
        ctx.get("chat_id"),
        {"email_from": email_context["sender"], "message_id": email_context["message_id"]},
    )
    return {"state_id": key, "chat_id": ctx.get("chat_id"), "stored": True}


async def notify_plainly(ctx: WorkflowContext, error: Exception) -> dict[str, Any]:
    """Fallback: plain notification to the default target, then a best-effort email."""
    collab = collaborators(ctx)
    email_context = ctx.get("email") or {}
    pr_id = email_context.get("pr_id") or ctx.input.get("pr_id")
    subject = email_context.get("subject") or ctx.input.get("subject") or "No Subject"
    payload: dict[str, Any] = {"fallback_action": "notification_skipped", "email_notified": False}

    target = ctx.input.get("default_target")
    if target and collab.messaging is not None:
        receipt = await collab.messaging.send(
            target, MessageContent(text=f"Review requested for PR #{pr_id}: {subject}")
        )
        payload.update(fallback_action="plain_notification_sent", message_id=receipt.message_id)

    sender = email_context.get("sender") or ctx.input.get("from")
    if sender and collab.notifier is not None:
        try:
            receipt = await collab.notifier.send(
                sender,
                f"Re: {subject}",
                f"Your review request for PR #{pr_id} was received but could not be "
                f"delivered to reviewers automatically ({error}).",
            )
            payload["email_notified"] = receipt.delivered
        except Exception as e:
            logger.warning(f"Fallback email to {sender} failed: {e}", error_type=type(e).__name__)

    return payload


def _review_request_payload(ctx: WorkflowContext) -> dict[str, Any]:
    return {"message_id": ctx.get("card").message_id, "chat_id": ctx.get("chat_id")}


EMAIL_TO_REVIEW_REQUEST = Pipeline(
    name="email_to_review_request",
    id_prefix="workflow",
    steps=(
        Step("process_email", process_email, output_key="email"),
        Step("resolve_chat_id", resolve_chat_id, output_key="chat_id"),
        Step("send_review_card", send_review_card, output_key="card"),
        Step("store_mapping", store_mapping, output_key="mapping"),
    ),
    fallback=notify_plainly,
    build_payload=_review_request_payload,
    description="Email -> review card in chat -> stored mapping for callbacks",
)


# review_callback


async def validate_callback(ctx: WorkflowContext) -> dict[str, Any]:
    data = dict(ctx.input)
    # Card buttons carry "pr:<action>:<pr id>"; explicit fields win
    parts = str(data.get("action") or "").split(":")
    if not data.get("pr_id") and len(parts) > 2:
        data["pr_id"] = parts[2]
    require_fields(data, ["action", "pr_id"], "callback data")
    return {
        "action": data["action"],
        "review_action": parts[1] if len(parts) > 1 else parts[0],
        "pr_id": str(data["pr_id"]),
        "chat_id": data.get("chat_id"),
        "message": data.get("message") or "",
    }


def _confirmation_target(callback: dict[str, Any], mapping) -> str | None:
    return callback["chat_id"] or (mapping.target if mapping else None)


async def get_email_mapping(ctx: WorkflowContext):
    store = collaborators(ctx).require("correlation_store", "get_email_mapping")
    callback = ctx.get("callback")
    mapping = await store.get(correlation_key(callback["pr_id"]))
    # Checked before the remote action runs; that action cannot be undone
    if not _confirmation_target(callback, mapping):
        raise PipelineValidationError("Invalid callback data: no chat to confirm to")
    return mapping


async def execute_review_action(ctx: WorkflowContext) -> dict[str, Any]:
    remote = collaborators(ctx).require("remote_actions", "execute_review_action")
    callback = ctx.get("callback")
    outcome = await remote.execute(
        callback["review_action"], callback["pr_id"], callback["message"]
    )
    return {
        "action": callback["review_action"],
        "pr_id": callback["pr_id"],
        "executed": outcome.executed,
        "result": outcome.result,
    }


async def send_confirmation(ctx: WorkflowContext):
    gateway = collaborators(ctx).require("messaging", "send_confirmation")
    callback = ctx.get("callback")
    target = _confirmation_target(callback, ctx.get("mapping"))
    action = ctx.get("action_result")["action"]
    text = f'PR #{callback["pr_id"]} action "{action}" executed successfully'
    return await gateway.send(target, MessageContent(text=text, parse_mode="Markdown"))


def _wants_email_reply(ctx: WorkflowContext) -> bool:
    mapping = ctx.get("mapping")
    return bool(ctx.config.send_email_reply and mapping and mapping.meta.get("email_from"))


async def send_callback_email_reply(ctx: WorkflowContext) -> dict[str, Any]:
    notifier = collaborators(ctx).notifier
    if notifier is None:
        logger.info("Email reply not configured")
        return {"email_sent": False, "reason": "not_configured"}

    callback = ctx.get("callback")
    to = ctx.get("mapping").meta["email_from"]
    body = (
        "Your PR review action has been executed:\n\n"
        f"PR: #{callback['pr_id']}\n"
        f"Action: {ctx.get('action_result')['action']}\n"
        "Result: Success"
    )
    receipt = await notifier.send(to, f"PR #{callback['pr_id']} Action Completed", body)
    return {"email_sent": receipt.delivered, "to": to}


def _callback_payload(ctx: WorkflowContext) -> dict[str, Any]:
    reply = ctx.get("email_reply") or {}
    return {
        "action_result": ctx.get("action_result"),
        "confirmation_sent": True,
        "email_reply_sent": bool(reply.get("email_sent")),
    }


REVIEW_CALLBACK = Pipeline(
    name="review_callback",
    id_prefix="callback",
    steps=(
        Step("validate_callback", validate_callback, output_key="callback"),
        Step("get_email_mapping", get_email_mapping, output_key="mapping"),
        Step("execute_review_action", execute_review_action, output_key="action_result"),
        Step("send_confirmation", send_confirmation, output_key="confirmation"),
        Step(
            "send_email_reply",
            send_callback_email_reply,
            output_key="email_reply",
            condition=_wants_email_reply,
        ),
    ),
    build_payload=_callback_payload,
    description="Review card callback -> remote review action -> confirmation",
)
