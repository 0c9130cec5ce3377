"""Structured logging infrastructure.

This package provides centralized logging configuration and utilities
for the push dispatch engine using structlog.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_module_logger(): Get a logger for the calling module
    - bind_dispatch_context(): Context manager for dispatch-scoped logging
    - run_in_context(): Carry the bound context into worker threads
    - get_correlation_id(): Get current correlation ID from context
    - clear_dispatch_context(): Clear all dispatch context

Formatters:
    - mask_sensitive_data(): Processor to redact sensitive fields
    - truncate_large_values(): Processor to limit string lengths

Example:
    from infrastructure.logging import (
        configure_logging,
        get_module_logger,
        bind_dispatch_context,
    )

    configure_logging()

    logger = get_module_logger()
    logger.info("module_initialized")

    with bind_dispatch_context(notification_key="kickoff", event_id="kickoff:12:1"):
        logger.info("dispatch_started")
"""

# Core logging setup
from infrastructure.logging.setup import (
    configure_logging,
    get_module_logger,
)

# Dispatch context binding
from infrastructure.logging.context import (
    bind_dispatch_context,
    run_in_context,
    get_correlation_id,
    clear_dispatch_context,
)

# Log formatters/processors
from infrastructure.logging.formatters import (
    mask_sensitive_data,
    truncate_large_values,
    SENSITIVE_PATTERNS,
)

__all__ = [
    # Setup
    "configure_logging",
    "get_module_logger",
    # Context
    "bind_dispatch_context",
    "run_in_context",
    "get_correlation_id",
    "clear_dispatch_context",
    # Formatters
    "mask_sensitive_data",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
]
