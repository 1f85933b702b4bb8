"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across the lifecycle, sales and feed
services.

Usage:
    from flockledger.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="end_cycle",
        outcome="success",
        cycle_id=12,
        history_id=7,
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance with the 'flockledger.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'flockledger.services.cycle_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"flockledger.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "create_sale_event", "end_cycle")
        outcome: Outcome description (e.g., "success", "rejected", "skipped")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, deltas, reasons)

    Example:
        >>> log_operation(
        ...     logger,
        ...     operation="generate_sale_report",
        ...     outcome="rejected",
        ...     level=logging.WARNING,
        ...     sale_event_id=3,
        ...     reason="mortality floor",
        ... )
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
