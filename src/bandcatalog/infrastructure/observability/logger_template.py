"""Operation logging helpers.

USAGE:
    from bandcatalog.infrastructure.observability.logger_template import log_operation

    logger = logging.getLogger(__name__)

    async with log_operation(logger, "bulk_import", band_id=band_id, rows=len(rows)):
        await do_import()
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, wrap any multi-step operation in this: it logs {operation}.started, then .completed with
# duration_ms, or .failed with the error type and re-raises. Context kwargs go into extra= on
# every line, so keep them small (ids and counts, not whole row lists).
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Log operation start/end with automatic timing.

    Yields a mutable dict; keys added to it are included in the completion log,
    e.g. ``summary["added"] = 3``.

    Args:
        logger: Module logger
        operation: Operation name (e.g. "bulk_import", "catalog_cascade_delete")
        **context: Extra fields for every log line
    """
    start = time.monotonic()
    summary: dict[str, Any] = {}
    logger.info(f"{operation}.started", extra=context)
    try:
        yield summary
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                **summary,
                "duration_ms": duration_ms,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise
    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        f"{operation}.completed",
        extra={**context, **summary, "duration_ms": duration_ms},
    )
