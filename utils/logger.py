"""
Structured logging for the Volume Orchestrator.

Everything is rendered as one JSON object per line on stdout. Loggers handed
out for a wallet carry its shortened address, so a single wallet's history
can be filtered out of a session log.
"""

import logging
import sys
from typing import Optional

import structlog

from config.settings import settings
from utils.helpers import short_address

PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
    structlog.processors.JSONRenderer(),
]


def configure_logging(level: Optional[str] = None) -> None:
    """
    Route structlog through the standard library at ``level``.

    Args:
        level: debug, info, warning or error; defaults to ``VOLUME_LOG_LEVEL``
    """
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    structlog.configure(
        processors=PROCESSORS,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, wallet: Optional[str] = None) -> structlog.BoundLogger:
    """
    Logger for a module, optionally bound to one wallet.

    Args:
        name: Module name
        wallet: Wallet address to attach as ``wallet`` context

    Returns:
        Logger instance
    """
    log = structlog.get_logger(name)
    if wallet:
        return log.bind(wallet=short_address(wallet))
    return log


configure_logging()

# Application-level logger
logger = get_logger("volume_orchestrator")
