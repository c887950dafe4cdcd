"""Logging and operation tracing helpers."""

from bandcatalog.infrastructure.observability.logging import (
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
]
