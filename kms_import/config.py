from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from .workflow import DEFAULT_DESCRIPTION, DEFAULT_IMPORT_WINDOW, DEFAULT_PENDING_WINDOW_DAYS

_LOG_LEVEL_ENV = "KMS_IMPORT_LOG_LEVEL"

# KMS accepts a deletion waiting period between 7 and 30 days.
MIN_PENDING_WINDOW_DAYS = 7
MAX_PENDING_WINDOW_DAYS = 30


def _default_log_level() -> str:
    return os.getenv(_LOG_LEVEL_ENV, "INFO").upper()


@dataclass(frozen=True)
class WorkflowConfig:
    """Settings for one import run, usually filled from the command line"""

    region: str = "us-west-2"
    endpoint_url: Optional[str] = None
    description: str = DEFAULT_DESCRIPTION
    pending_window_days: int = DEFAULT_PENDING_WINDOW_DAYS
    import_window_seconds: int = int(DEFAULT_IMPORT_WINDOW.total_seconds())
    require_hardened: bool = False
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    log_level: str = field(default_factory=_default_log_level)

    @property
    def import_window(self) -> timedelta:
        return timedelta(seconds=self.import_window_seconds)

    def validate(self) -> "WorkflowConfig":
        if not MIN_PENDING_WINDOW_DAYS <= self.pending_window_days <= MAX_PENDING_WINDOW_DAYS:
            raise ValueError(
                f"pending window must be between {MIN_PENDING_WINDOW_DAYS} and "
                f"{MAX_PENDING_WINDOW_DAYS} days, got {self.pending_window_days}"
            )
        if self.import_window_seconds <= 0:
            raise ValueError(f"import window must be positive, got {self.import_window_seconds}s")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if not self.description:
            raise ValueError("key description must not be empty")
        return self


__all__ = ["WorkflowConfig", "MIN_PENDING_WINDOW_DAYS", "MAX_PENDING_WINDOW_DAYS"]
