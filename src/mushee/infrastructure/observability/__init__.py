"""Observability infrastructure for structured logging."""

from mushee.infrastructure.observability.logger_template import (
    end_operation,
    log_operation,
    start_operation,
)
from mushee.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "configure_logging",
    "end_operation",
    "get_correlation_id",
    "log_operation",
    "set_correlation_id",
    "start_operation",
]
