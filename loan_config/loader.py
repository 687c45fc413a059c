"""
Configuration Loader (``loan_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a ``LoanConfigPack``.
The single public entry point for runtime config is
``loan_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel,
modules, or engines; the module layer turns ``LoanConfigPack.requests``
into its own typed config.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or unknown top-level keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

REQUIRED_KEYS = frozenset({"config_id", "config_version", "requests"})


@dataclass(frozen=True)
class LoanConfigPack:
    """A loaded configuration file and its identity."""
    config_id: str
    config_version: int
    checksum: str
    source: str
    requests: Mapping[str, Any] = field(default_factory=dict)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load and parse a YAML file.

    Raises:
        FileNotFoundError: if the path does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any], source: str = "<memory>") -> LoanConfigPack:
    """Validate top-level keys and build the pack."""
    missing = sorted(REQUIRED_KEYS - set(data))
    if missing:
        raise ValueError(f"{source}: missing configuration keys {missing}")
    unknown = sorted(set(data) - REQUIRED_KEYS)
    if unknown:
        raise ValueError(f"{source}: unknown configuration keys {unknown}")
    requests = data["requests"] or {}
    if not isinstance(requests, dict):
        raise ValueError(f"{source}: 'requests' must be a mapping")
    return LoanConfigPack(
        config_id=str(data["config_id"]),
        config_version=int(data["config_version"]),
        checksum=compute_checksum(data),
        source=source,
        requests=MappingProxyType(dict(requests)),
    )
