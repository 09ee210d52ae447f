"""Collaborator contracts and in-memory implementations."""

from .base import (
    ActionOutcome,
    Collaborators,
    CorrelationRecord,
    CorrelationStore,
    IncidentTracker,
    IssueTracker,
    MessageAction,
    MessageContent,
    MessageReceipt,
    MessagingGateway,
    NotificationReceipt,
    OutboundNotifier,
    RemoteActionExecutor,
    ReplyDrafter,
)
from .memory import (
    InMemoryCorrelationStore,
    InMemoryIncidentTracker,
    InMemoryIssueTracker,
    RecordingActionExecutor,
    RecordingMessagingGateway,
    RecordingNotifier,
)

__all__ = [
    "ActionOutcome",
    "Collaborators",
    "CorrelationRecord",
    "CorrelationStore",
    "IncidentTracker",
    "IssueTracker",
    "MessageAction",
    "MessageContent",
    "MessageReceipt",
    "MessagingGateway",
    "NotificationReceipt",
    "OutboundNotifier",
    "RemoteActionExecutor",
    "ReplyDrafter",
    "InMemoryCorrelationStore",
    "InMemoryIncidentTracker",
    "InMemoryIssueTracker",
    "RecordingActionExecutor",
    "RecordingMessagingGateway",
    "RecordingNotifier",
]
