"""
Loan Configuration (``loan_config``).

Responsibility
--------------
The single public entry point for runtime configuration.
``get_active_config()`` loads a YAML file (the packaged
``defaults.yaml`` unless a path is given), validates it and emits a
``LOAN_CONFIG_TRACE`` log entry carrying the config id, version and
checksum.  That trace ties every run back to the exact configuration that
governed it.

Usage::

    from loan_config import get_active_config
    from loan_modules.requests.config import LoanRequestConfig

    pack = get_active_config()
    config = LoanRequestConfig.from_dict(dict(pack.requests))
"""

from __future__ import annotations

import logging
from pathlib import Path

from loan_config.loader import LoanConfigPack, compute_checksum, load_yaml_file, parse_config

_logger = logging.getLogger("loan_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> LoanConfigPack:
    """
    Load, validate and return the active configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If required keys are missing or unknown keys present.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    pack = parse_config(load_yaml_file(config_path), source=str(config_path))

    _logger.info(
        "LOAN_CONFIG_TRACE",
        extra={
            "trace_type": "LOAN_CONFIG_TRACE",
            "config_id": pack.config_id,
            "config_version": pack.config_version,
            "checksum": pack.checksum,
            "config_source": pack.source,
            "setting_count": len(pack.requests),
        },
    )
    return pack


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "LoanConfigPack",
    "compute_checksum",
    "get_active_config",
    "load_yaml_file",
    "parse_config",
]
