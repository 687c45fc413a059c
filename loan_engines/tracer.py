"""
loan_engines.tracer -- Engine invocation tracer emitting LOAN_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps engine
    invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected inputs), duration_ms and the outcome.

Architecture position:
    Engines -- infrastructure support for the splitter, reconciler and kit
    factory.  Emits a log record only; never touches inputs.
    Uses its own logger namespace (``loan_kernel.engines.tracer``).

Invariants enforced:
    - Fingerprint determinism: _canonicalize produces stable string
      representations; dict keys are sorted; the hash is SHA-256 truncated
      to 16 hex chars.

Failure modes:
    - Fields named in fingerprint_fields that the call does not bind are
      recorded as "null".
    - An exception raised by the engine is re-raised unchanged after a
      trace record with ``outcome="error"`` is emitted.

Usage:
    from loan_engines.tracer import traced_engine

    @traced_engine("splitter", "1.0", fingerprint_fields=("request", "selection"))
    def split(self, request, selection):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

_logger = logging.getLogger("loan_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting.

    Returns a deterministic string for None, bool, int, float, str, dict
    (sorted keys), set (sorted), list/tuple (order-preserved).  Unknown
    types fall back to ``str(value)``; frozen dataclasses and UUIDs have a
    stable one.
    """
    if value is None:
        return "null"
    if isinstance(value, (bool, int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        items = sorted((str(k), v) for k, v in value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected input fields.

    Only the fields listed in fingerprint_fields are included. Missing
    fields are recorded as "null". The result is a hex digest prefix (16 chars).
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        val = arguments.get(field)
        parts.append(f"{field}={_canonicalize(val)}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits LOAN_ENGINE_TRACE for engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "splitter").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Parameter names (positional or keyword) to
            include in the input fingerprint hash.

    Returns:
        Decorator function.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            outcome = "ok"
            t0 = time.monotonic()
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                outcome = "error"
                error_code = getattr(exc, "code", type(exc).__name__)
                raise
            finally:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                extra = {
                    "trace_type": "LOAN_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                    "outcome": outcome,
                }
                if outcome == "error":
                    extra["error_code"] = error_code
                _logger.info("LOAN_ENGINE_TRACE", extra=extra)

        return wrapper

    return decorator
