"""
loan_engines.numbering -- Request number allocation.

Responsibility:
    Hand out human-readable request numbers: ``LR-<year>-<seq>`` for manual
    requests, ``KIT-<year>-<seq>`` for kit orders and ``<parent>-P<n>`` for
    requests split off during packing.

Invariants enforced:
    - A number is issued at most once per allocator, including numbers
      registered through ``observe()`` (loaded from storage).
    - Child numbers of one parent are strictly increasing and never reused,
      even after the child request is completed.

Failure modes:
    - ValueError for a non-positive sequence width or a blank prefix/marker.
"""

from __future__ import annotations

import re
import threading
from collections import defaultdict

from loan_kernel.logging_config import get_logger

logger = get_logger("engines.numbering")


class RequestNumberAllocator:
    """Thread-safe allocator for request numbers."""

    def __init__(
        self,
        request_prefix: str = "LR-",
        kit_prefix: str = "KIT-",
        sequence_width: int = 3,
        child_marker: str = "P",
    ) -> None:
        if sequence_width <= 0:
            raise ValueError(f"sequence_width must be positive, got {sequence_width}")
        if not request_prefix or not kit_prefix or not child_marker:
            raise ValueError("prefixes and child marker cannot be blank")
        self.request_prefix = request_prefix
        self.kit_prefix = kit_prefix
        self.sequence_width = sequence_width
        self.child_marker = child_marker

        self._lock = threading.Lock()
        self._sequences: dict[tuple[str, int], int] = defaultdict(int)
        self._children: dict[str, int] = defaultdict(int)
        self._issued: set[str] = set()

        self._base_pattern = re.compile(
            rf"^(?P<prefix>{re.escape(request_prefix)}|{re.escape(kit_prefix)})"
            rf"(?P<year>\d{{4}})-(?P<seq>\d+)$"
        )
        self._child_pattern = re.compile(
            rf"^(?P<parent>.+)-{re.escape(child_marker)}(?P<n>\d+)$"
        )

    def next_request_number(self, year: int) -> str:
        return self._next_base(self.request_prefix, year)

    def next_kit_number(self, year: int) -> str:
        return self._next_base(self.kit_prefix, year)

    def next_child_number(self, parent_number: str) -> str:
        """Number for a request split off ``parent_number``."""
        with self._lock:
            while True:
                self._children[parent_number] += 1
                candidate = f"{parent_number}-{self.child_marker}{self._children[parent_number]}"
                if candidate not in self._issued:
                    break
            self._issued.add(candidate)
        logger.debug(
            "child_number_allocated",
            extra={"parent_number": parent_number, "request_number": candidate},
        )
        return candidate

    def observe(self, request_number: str) -> None:
        """
        Register a number issued elsewhere so it is never handed out again.

        Counters are advanced past any sequence or child index the number
        carries. Numbers in an unknown format are only reserved.
        """
        with self._lock:
            self._issued.add(request_number)
            child = self._child_pattern.match(request_number)
            if child:
                parent = child.group("parent")
                index = int(child.group("n"))
                self._children[parent] = max(self._children[parent], index)
                return
            base = self._base_pattern.match(request_number)
            if base:
                key = (base.group("prefix"), int(base.group("year")))
                self._sequences[key] = max(self._sequences[key], int(base.group("seq")))

    def is_issued(self, request_number: str) -> bool:
        with self._lock:
            return request_number in self._issued

    def _next_base(self, prefix: str, year: int) -> str:
        with self._lock:
            key = (prefix, year)
            while True:
                self._sequences[key] += 1
                candidate = f"{prefix}{year}-{self._sequences[key]:0{self.sequence_width}d}"
                if candidate not in self._issued:
                    break
            self._issued.add(candidate)
        logger.debug(
            "request_number_allocated",
            extra={"prefix": prefix, "year": year, "request_number": candidate},
        )
        return candidate
