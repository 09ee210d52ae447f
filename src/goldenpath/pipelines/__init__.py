"""The five catalog pipelines, built on one generic runner."""

from .executor import (
    CATALOG,
    GoldenPathExecutor,
    build_catalog,
    catalog_step_names,
    create_reliability_layer,
)
from .incidents import ALERT_ACKNOWLEDGEMENT, ISSUE_ASSIGNMENT
from .replies import EMAIL_REPLY_DRAFT
from .review import EMAIL_TO_REVIEW_REQUEST, REVIEW_CALLBACK

__all__ = [
    "CATALOG",
    "GoldenPathExecutor",
    "build_catalog",
    "catalog_step_names",
    "create_reliability_layer",
    "EMAIL_TO_REVIEW_REQUEST",
    "REVIEW_CALLBACK",
    "EMAIL_REPLY_DRAFT",
    "ALERT_ACKNOWLEDGEMENT",
    "ISSUE_ASSIGNMENT",
]
