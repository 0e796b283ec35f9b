"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across unit, product and conversion
operations.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="save_product_units",
        outcome="success",
        product_id=12,
        unit_count=3,
    )

    log_operation(
        logger,
        operation="validate_conversions",
        outcome="missing_pair",
        level=logging.WARNING,
        pair=("g", "L"),
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "unit_catalog.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance under the 'unit_catalog.services' prefix.

    Example:
        >>> logger = get_service_logger("src.services.product_service")
        >>> logger.name
        'unit_catalog.services.product_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


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
        operation: Operation name (e.g., "create_unit", "synchronize")
        outcome: Outcome description (e.g., "success", "validation_failed", "error")
        level: Log level (default: INFO). Use DEBUG for frequent logs.
        **context: Additional context fields (entity IDs, unit names, error details)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
