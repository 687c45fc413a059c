"""
Loan Requests Module (``loan_modules.requests``).

Responsibility
--------------
Glue for the loan-request lifecycle: a catalog that owns the requests, a
configuration schema, and ``LifecycleController``, which composes the
selection, splitting, reconciliation and kit engines.

Architecture position
---------------------
**Modules layer** -- depends on ``loan_engines`` and ``loan_kernel``.
ORM models live in ``loan_modules.requests.orm`` and are imported on
demand (see ``loan_modules._orm_registry``).

Invariants enforced
-------------------
* Single writer per request id (``RequestCatalog.lock_for``).
* Status changes follow ``LOAN_REQUEST_WORKFLOW``.
* Request numbers are never reused.
"""

from loan_modules.requests.catalog import RequestCatalog
from loan_modules.requests.config import LoanRequestConfig
from loan_modules.requests.service import LifecycleController, RequestLine

__all__ = [
    "LifecycleController",
    "LoanRequestConfig",
    "RequestCatalog",
    "RequestLine",
]
