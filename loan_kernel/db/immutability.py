"""
ORM-level append-only enforcement.

Return records are created exactly once per physical return event.
Corrections happen through a new record, never by editing history, so any
mapped class that mixes in ``AppendOnly`` rejects UPDATE and DELETE at
flush time.
"""

from sqlalchemy import event

from loan_kernel.db.base import AppendOnly
from loan_kernel.exceptions import ImmutabilityViolationError
from loan_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_registered = False


def _reject(operation: str, target) -> None:
    entity_type = type(target).__append_only_entity__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} rows are append-only ({operation} rejected)",
    )


def _check_append_only_update(mapper, connection, target):
    _reject("UPDATE", target)


def _check_append_only_delete(mapper, connection, target):
    _reject("DELETE", target)


def register_immutability_listeners() -> None:
    """
    Register append-only listeners for every AppendOnly model.

    Idempotent. Call once during application initialization.
    """
    global _registered
    if _registered:
        return
    event.listen(AppendOnly, "before_update", _check_append_only_update, propagate=True)
    event.listen(AppendOnly, "before_delete", _check_append_only_delete, propagate=True)
    _registered = True
    logger.info("immutability_listeners_registered")

