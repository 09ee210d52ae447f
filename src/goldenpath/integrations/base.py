"""
Collaborator contracts consumed by the catalog pipelines.

Concrete messaging, source-control, incident and email clients live outside this
package; they only need to satisfy these protocols. Collaborator failures are
ordinary exceptions and go through the same retry and breaker policy as any
other step error.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..core.errors import MissingCollaboratorError


@dataclass(frozen=True)
class CorrelationRecord:
    """Messaging target mapped to a pipeline-domain id such as ``pr42``."""

    key: str
    target: str
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessageAction:
    label: str
    callback_data: str


@dataclass(frozen=True)
class MessageContent:
    text: str
    actions: tuple[MessageAction, ...] = ()
    parse_mode: str | None = None


@dataclass(frozen=True)
class MessageReceipt:
    message_id: str


@dataclass(frozen=True)
class ActionOutcome:
    executed: bool
    result: Any = None


@dataclass(frozen=True)
class NotificationReceipt:
    delivered: bool


@runtime_checkable
class CorrelationStore(Protocol):
    """Idempotent key -> target mapping."""

    async def get(self, key: str) -> CorrelationRecord | None: ...

    async def put(self, key: str, target: str, meta: dict[str, Any] | None = None) -> None: ...


@runtime_checkable
class MessagingGateway(Protocol):
    """At-least-once message delivery to a chat target."""

    async def send(self, target: str, content: MessageContent) -> MessageReceipt: ...


@runtime_checkable
class RemoteActionExecutor(Protocol):
    """Side-effecting, non-idempotent remote action (e.g. approving a review)."""

    async def execute(self, action: str, target_id: str, message: str) -> ActionOutcome: ...


@runtime_checkable
class OutboundNotifier(Protocol):
    """Best-effort outbound email."""

    async def send(self, to: str, subject: str, body: str) -> NotificationReceipt: ...


@runtime_checkable
class ReplyDrafter(Protocol):
    async def draft(self, reply_to: str, message_id: str, text: str) -> str: ...


@runtime_checkable
class IncidentTracker(Protocol):
    async def acknowledge(
        self, incident_id: str, user_id: str, timestamp: str
    ) -> dict[str, Any]: ...


@runtime_checkable
class IssueTracker(Protocol):
    async def assign(self, issue_id: str, user_id: str, timestamp: str) -> dict[str, Any]: ...


@dataclass
class Collaborators:
    """Bundle of collaborators handed to a pipeline run."""

    correlation_store: CorrelationStore | None = None
    messaging: MessagingGateway | None = None
    remote_actions: RemoteActionExecutor | None = None
    notifier: OutboundNotifier | None = None
    drafter: ReplyDrafter | None = None
    incidents: IncidentTracker | None = None
    issues: IssueTracker | None = None

    def require(self, name: str, step_name: str) -> Any:
        collaborator = getattr(self, name, None)
        if collaborator is None:
            raise MissingCollaboratorError(name, step_name)
        return collaborator
