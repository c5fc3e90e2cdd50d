"""Logging Utilities for the Recipe Image Enrichment job
=======================================================

Centralized logging configuration and utilities.

Usage:
    from tools.logging_utils import get_logger

    logger = get_logger(__name__)
    logger.info("Operation completed successfully")
    logger.error("Operation failed")

Standards:
    - Backend/operational code: MUST use logger
    - User-facing progress output: tools.progress_ui (rich console)
    - Log levels: CRITICAL, ERROR, WARNING, INFO, DEBUG
    - Configuration: config.LOGGING_CONFIG
    - Location: data/logs/recipe_images.log (10MB rotation, 5 backups)
"""

import copy
import logging
import logging.config
from typing import Optional

from config import LOG_DIR, LOGGING_CONFIG

_configured = False


def setup_logging(console_level: Optional[str] = None, force: bool = False):
    """
    Initialize logging configuration once.

    Idempotent - safe to call multiple times. Pass ``force=True`` to apply a
    new console level after the first call (e.g. ``--verbose``).

    Args:
        console_level: Override for the console handler level
        force: Re-apply the configuration even if already configured
    """
    global _configured
    if _configured and not force:
        return

    config = copy.deepcopy(LOGGING_CONFIG)
    if console_level:
        config["handlers"]["console"]["level"] = console_level.upper()

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(config)
    except (OSError, ValueError) as e:
        # Read-only checkouts still get console output
        config["handlers"].pop("file", None)
        config["root"]["handlers"] = ["console"]
        logging.config.dictConfig(config)
        logging.getLogger(__name__).warning(f"⚠️ File logging disabled: {e}")

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get logger for module.

    Args:
        name: Module name (use __name__)

    Returns:
        Configured logger instance

    Example:
        logger = get_logger(__name__)
        logger.info("Starting process")
    """
    setup_logging()
    return logging.getLogger(name)
