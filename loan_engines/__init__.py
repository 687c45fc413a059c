"""
Module: loan_engines
Responsibility:
    Package entrypoint that re-exports the request engines: selection
    tracking, splitting at packing time, return reconciliation, kit order
    creation and request numbering.

Architecture position:
    Engines -- may only import loan_kernel (and sibling engine modules).
    MUST NOT import loan_modules or loan_config.

Invariants enforced:
    - Engines never call ``datetime.now()`` directly; time comes from an
      injected Clock.
    - Splitter, reconciler and kit factory invocations are traced via
      ``@traced_engine`` (LOAN_ENGINE_TRACE).

Usage:
    from loan_engines import RequestSplitter, ReturnReconciler
"""

from loan_engines.kit_factory import KitOrderFactory
from loan_engines.numbering import RequestNumberAllocator
from loan_engines.reconciler import ReturnReconciler, ReturnSummary
from loan_engines.selection import ItemSelectionTracker, Selection
from loan_engines.splitter import RequestSplitter, SplitResult
from loan_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "ItemSelectionTracker",
    "KitOrderFactory",
    "RequestNumberAllocator",
    "RequestSplitter",
    "ReturnReconciler",
    "ReturnSummary",
    "Selection",
    "SplitResult",
    "compute_input_fingerprint",
    "traced_engine",
]
