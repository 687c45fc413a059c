"""
Loan Kernel Invariants Contract.

These invariants are structural law for the request lifecycle. No
LoanRequestConfig value may switch them off.

This module only declares them. Enforcement is distributed across
ItemSelectionTracker, RequestSplitter, ReturnReconciler, the
LOAN_REQUEST_WORKFLOW table and RequestCatalog.
"""

from enum import Enum, unique


@unique
class LoanInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one guarantee that holds after every successful
    operation, and that a failed operation leaves untouched.
    """

    SPLIT_CONSERVATION = "split_conservation"
    """For every item, moved quantity plus remaining quantity equals the
    original requested quantity. Enforced by RequestSplitter."""

    NO_OVER_RETURN = "no_over_return"
    """returned_good + returned_defective never exceeds requested_quantity.
    Enforced by ReturnReconciler and by LoanItem itself."""

    RETURN_IDEMPOTENCY = "return_idempotency"
    """A return record id is applied at most once per request. Enforced by
    ReturnReconciler history."""

    JUSTIFICATION_GATE = "justification_gate"
    """Packing a reduced quantity requires a non-blank note. Enforced by
    RequestSplitter."""

    TRANSITION_ORDER = "transition_order"
    """Status changes follow LOAN_REQUEST_WORKFLOW; packing only through a
    split and settlement only through reconciliation."""

    KIT_ATOMICITY = "kit_atomicity"
    """Kit orders are selected and packed whole. Enforced by
    ItemSelectionTracker and RequestSplitter."""

    NUMBER_UNIQUENESS = "number_uniqueness"
    """A request number is never reused, including for split-off children.
    Enforced by RequestNumberAllocator and RequestCatalog."""


# All invariants as a frozenset for programmatic checks.
ALL_LOAN_INVARIANTS: frozenset[LoanInvariant] = frozenset(LoanInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "loan_engines",
    "loan_config",
    "loan_modules",
)
