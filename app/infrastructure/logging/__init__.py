"""Structured logging infrastructure.

Public API:
    - configure_logging(): Initialize logging for the process
    - get_module_logger(): Get a logger for the calling module
    - bind_dispatch_context(): Context manager binding correlation/tenant ids
    - get_correlation_id(): Current correlation id
    - clear_dispatch_context(): Clear all bound context

Example:
    from infrastructure.logging import get_module_logger, bind_dispatch_context

    logger = get_module_logger()

    with bind_dispatch_context(correlation_id="order-123", tenant_id="acme"):
        logger.info("processing_intent")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_module_logger,
    logger,
)
from infrastructure.logging.context import (
    bind_dispatch_context,
    get_correlation_id,
    clear_dispatch_context,
)
from infrastructure.logging.formatters import (
    mask_sensitive_data,
    truncate_large_values,
    add_environment_info,
    SENSITIVE_PATTERNS,
)

__all__ = [
    "configure_logging",
    "get_module_logger",
    "logger",
    "bind_dispatch_context",
    "get_correlation_id",
    "clear_dispatch_context",
    "mask_sensitive_data",
    "truncate_large_values",
    "add_environment_info",
    "SENSITIVE_PATTERNS",
]
