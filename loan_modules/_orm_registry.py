"""
Module ORM Registry (``loan_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created, and register the append-only listeners those models rely on.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``loan_modules``
packages and from ``loan_kernel.db`` (allowed: modules -> kernel).
MUST NOT be imported by ``loan_kernel``.

Usage
-----
Hosts and ``tests/conftest.py`` call ``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import every ``loan_modules.*.orm`` module to register ORM models.

    This function is idempotent -- repeated calls are harmless.
    """
    import loan_modules.requests.orm  # noqa: F401


def create_all_tables() -> None:
    """Register all module ORM models and append-only listeners, then create every table.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from loan_kernel.db.engine import create_tables
    from loan_kernel.db.immutability import register_immutability_listeners

    import_all_orm_models()
    register_immutability_listeners()
    create_tables()
