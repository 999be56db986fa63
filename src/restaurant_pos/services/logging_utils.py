"""Structured logging for the service layer.

Ledger operations (prepare, sell, refund, restock) and bulk updates log one
record per outcome. The record message is ``"<operation>: <outcome>"``; the
ids and quantities involved travel as record attributes so a handler or
formatter can pick them out without parsing text:

    logger = get_service_logger(__name__)
    log_operation(logger, "sell_product", "success", sale_id=7, product_id=2, quantity=1)
"""

import logging
from typing import Any

SERVICE_LOGGER_PREFIX = "restaurant_pos.services"

# Attribute names LogRecord already defines; passing them in extra raises KeyError
_RESERVED_RECORD_KEYS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def get_service_logger(name: str) -> logging.Logger:
    """
    Logger for a service module, named ``restaurant_pos.services.<module>``.

    Accepts either a bare module name or a dotted ``__name__``.
    """
    module = name.rsplit(".", 1)[-1]
    return logging.getLogger(f"{SERVICE_LOGGER_PREFIX}.{module}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log one outcome of a service operation.

    Args:
        logger: Logger from get_service_logger
        operation: Operation name, e.g. "prepare_recipe"
        outcome: Short outcome tag, e.g. "success", "insufficient_stock",
            "transaction_failed"
        level: Log level; rejections use WARNING, failures ERROR
        **context: Record attributes such as recipe_id, quantity or error.
            Keys that collide with LogRecord's own attributes (``name``,
            ``message``, ...) are stored with a ``ctx_`` prefix.
    """
    extra = {"operation": operation, "outcome": outcome}
    for key, value in context.items():
        if key in _RESERVED_RECORD_KEYS:
            key = f"ctx_{key}"
        extra[key] = value
    logger.log(level, f"{operation}: {outcome}", extra=extra)
