"""
Pure domain layer.

Holds the time abstraction, the loan records and the request lifecycle
shared by engines and services. No ORM, no database, no I/O beyond the
sanctioned SystemClock.
"""

from loan_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from loan_kernel.domain.lifecycle import (
    LOAN_REQUEST_WORKFLOW,
    allowed_targets,
    apply_transition,
    check_transition,
)
from loan_kernel.domain.models import (
    Article,
    ArticleType,
    CatalogStage,
    ItemStatus,
    Kit,
    KitItem,
    LoanItem,
    LoanRequest,
    PartialReturnRecord,
    Priority,
    RequestStatus,
    ReturnEntry,
    TransitionRecord,
)
from loan_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Article",
    "ArticleType",
    "CatalogStage",
    "ItemStatus",
    "Kit",
    "KitItem",
    "LoanItem",
    "LoanRequest",
    "PartialReturnRecord",
    "Priority",
    "RequestStatus",
    "ReturnEntry",
    "TransitionRecord",
    "Guard",
    "Transition",
    "Workflow",
    "LOAN_REQUEST_WORKFLOW",
    "allowed_targets",
    "apply_transition",
    "check_transition",
]
