"""
Loan Request Configuration Schema.

Defines the structure and sensible defaults for request numbering,
packing and return settings. Actual values are loaded from
``loan_config`` at runtime.
"""

from dataclasses import dataclass, fields
from typing import Self

from loan_kernel.domain.models import Priority
from loan_kernel.logging_config import get_logger

logger = get_logger("modules.requests.config")


@dataclass
class LoanRequestConfig:
    """
    Configuration schema for the loan request module.

    Override at instantiation with site-specific values:

        config = LoanRequestConfig(
            request_prefix="REQ-",
            overdue_grace_days=2,
        )
    """

    # Numbering
    request_prefix: str = "LR-"
    kit_prefix: str = "KIT-"
    sequence_width: int = 3
    split_child_marker: str = "P"

    # Packing
    require_quantity_justification: bool = True

    # Kit orders
    kit_approver: str = "system"

    # Defaults
    default_priority: Priority = Priority.MEDIUM

    # Returns
    overdue_grace_days: int = 0

    def __post_init__(self):
        if isinstance(self.default_priority, str):
            self.default_priority = Priority(self.default_priority)
        if self.sequence_width <= 0:
            raise ValueError(f"sequence_width must be positive, got {self.sequence_width}")
        if self.overdue_grace_days < 0:
            raise ValueError(
                f"overdue_grace_days cannot be negative, got {self.overdue_grace_days}"
            )
        if self.request_prefix == self.kit_prefix:
            raise ValueError("request_prefix and kit_prefix must differ")
        logger.info(
            "loan_request_config_initialized",
            extra={
                "request_prefix": self.request_prefix,
                "kit_prefix": self.kit_prefix,
                "sequence_width": self.sequence_width,
                "require_quantity_justification": self.require_quantity_justification,
                "kit_approver": self.kit_approver,
                "default_priority": self.default_priority.value,
                "overdue_grace_days": self.overdue_grace_days,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the stock defaults."""
        logger.info("loan_request_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from YAML)."""
        logger.info(
            "loan_request_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown loan request config keys: {unknown}")
        return cls(**data)

    @classmethod
    def load(cls, path=None) -> Self:
        """Create config from the active configuration file."""
        from loan_config import get_active_config

        pack = get_active_config(path)
        return cls.from_dict(dict(pack.requests))
