"""Helpers shared by the catalog pipelines."""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from ..core.errors import PipelineValidationError
from ..core.pipeline import WorkflowContext
from ..integrations.base import Collaborators


def collaborators(ctx: WorkflowContext) -> Collaborators:
    return ctx.collaborators or Collaborators()


def require_fields(data: dict[str, Any], fields: Iterable[str], what: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise PipelineValidationError(f"Invalid {what}: missing {' or '.join(missing)}")


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()
