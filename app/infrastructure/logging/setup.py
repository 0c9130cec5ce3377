"""Structlog configuration for the dispatch engine.

Logging is configured once, on first import of this module. Dispatch code
only ever asks for a module logger:

    from infrastructure.logging import get_module_logger

    logger = get_module_logger()
    logger.info("verification_completed", subscribed=3, unsubscribed=1)

Development renders to the console, production renders JSON lines. Under
pytest every record is dropped.
"""

import inspect
import logging
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.typing import Processor

from infrastructure.logging.formatters import mask_sensitive_data, truncate_large_values
from infrastructure.services.providers import get_settings

# Library loggers that emit a record per HTTP request or SQL statement.
NOISY_LOGGERS = ("urllib3", "sqlalchemy.engine")


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def _processors(prod_mode: bool) -> List[Processor]:
    processors: List[Processor] = [
        # correlation_id, notification_key and event_id bound per dispatch
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        mask_sensitive_data(),
        truncate_large_values(max_length=1000),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if prod_mode:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
) -> BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Overrides settings.LOG_LEVEL (DEBUG, INFO, WARNING, ...).
        is_production: Overrides settings.is_production; selects JSON output.

    Returns:
        The root structlog logger.
    """
    if _is_test_environment():
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(format="%(message)s", level=logging.CRITICAL + 1, force=True)
        return structlog.stdlib.get_logger()

    settings = get_settings()
    prod_mode = settings.is_production if is_production is None else is_production
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)

    structlog.configure(
        processors=_processors(prod_mode),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level)

    # Never below WARNING, even when the engine runs at DEBUG.
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.stdlib.get_logger()


logger: BoundLogger = configure_logging()


def _calling_module_name() -> Optional[str]:
    frame = inspect.currentframe()
    # Skip this helper and get_module_logger itself.
    for _ in range(2):
        if frame is None:
            return None
        frame = frame.f_back
    module = inspect.getmodule(frame) if frame is not None else None
    return module.__name__ if module else None


def get_module_logger() -> BoundLogger:
    """Get a logger bound to the calling module.

    In ``modules/push/verifier.py`` the logger carries
    ``component="verifier"`` and ``module_path="modules.push.verifier"``.
    """
    module_name = _calling_module_name()
    if module_name is None:
        return logger.bind(component="unknown")
    return logger.bind(component=module_name.rsplit(".", 1)[-1], module_path=module_name)
