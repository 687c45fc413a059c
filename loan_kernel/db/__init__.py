"""Database layer - engine, base classes and append-only enforcement."""

from loan_kernel.db.base import AppendOnly, Base, TrackedBase, UUIDString
from loan_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from loan_kernel.db.immutability import register_immutability_listeners

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "register_immutability_listeners",
    "Base",
    "TrackedBase",
    "AppendOnly",
    "UUIDString",
]
