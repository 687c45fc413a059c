"""
Loan Modules.

Thin orchestration layers over the Loan Kernel and Engines.
Each module contains:
- Configuration schema (numbering, packing and return settings)
- The catalog that owns its records
- A service facade that drives the lifecycle
- ORM models that mirror the records for hosts that persist them

Modules:
- Requests: loan requests, kit orders, packing splits, partial returns
"""

from loan_modules import requests

__all__ = ["requests"]
