"""In-memory collaborators for embedding, local runs and tests."""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any

from .base import (
    ActionOutcome,
    CorrelationRecord,
    MessageContent,
    MessageReceipt,
    NotificationReceipt,
)


class InMemoryCorrelationStore:
    """Dict-backed correlation store; ``put`` replaces existing entries."""

    def __init__(self, records: dict[str, CorrelationRecord] | None = None):
        self._records: dict[str, CorrelationRecord] = dict(records or {})
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> CorrelationRecord | None:
        async with self._lock:
            return self._records.get(key)

    async def put(self, key: str, target: str, meta: dict[str, Any] | None = None) -> None:
        async with self._lock:
            self._records[key] = CorrelationRecord(key=key, target=target, meta=dict(meta or {}))

    def __len__(self) -> int:
        return len(self._records)


@dataclass
class SentMessage:
    target: str
    content: MessageContent
    message_id: str


@dataclass
class RecordingMessagingGateway:
    """Messaging gateway that records every message instead of sending it."""

    sent: list[SentMessage] = field(default_factory=list)
    _ids: Any = field(default_factory=lambda: itertools.count(1), repr=False)

    async def send(self, target: str, content: MessageContent) -> MessageReceipt:
        message_id = str(next(self._ids))
        self.sent.append(SentMessage(target=target, content=content, message_id=message_id))
        return MessageReceipt(message_id=message_id)


@dataclass
class RecordingActionExecutor:
    calls: list[tuple[str, str, str]] = field(default_factory=list)

    async def execute(self, action: str, target_id: str, message: str) -> ActionOutcome:
        self.calls.append((action, target_id, message))
        return ActionOutcome(executed=True, result={"action": action, "target_id": target_id})


@dataclass
class RecordingNotifier:
    outbox: list[tuple[str, str, str]] = field(default_factory=list)

    async def send(self, to: str, subject: str, body: str) -> NotificationReceipt:
        self.outbox.append((to, subject, body))
        return NotificationReceipt(delivered=True)


@dataclass
class InMemoryIncidentTracker:
    incidents: dict[str, dict[str, Any]] = field(default_factory=dict)

    async def acknowledge(self, incident_id: str, user_id: str, timestamp: str) -> dict[str, Any]:
        incident = self.incidents.setdefault(incident_id, {"incident_id": incident_id})
        incident.update(status="acknowledged", acknowledged_by=user_id, acknowledged_at=timestamp)
        return dict(incident)


@dataclass
class InMemoryIssueTracker:
    issues: dict[str, dict[str, Any]] = field(default_factory=dict)

    async def assign(self, issue_id: str, user_id: str, timestamp: str) -> dict[str, Any]:
        issue = self.issues.setdefault(issue_id, {"issue_id": issue_id})
        issue.update(status="assigned", assignee=user_id, assigned_at=timestamp)
        return dict(issue)
