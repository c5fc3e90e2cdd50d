"""
Configuration module for the Recipe Image Enrichment pipeline
==============================================================

This module centralizes all configuration for the image enrichment job that
crawls each recipe's source page and stores a representative image URL.

CONFIGURATION:
- data/config.yaml: Optional user settings (batch sizing, pacing, database path)
- Environment variables take priority for deployment-specific values
  (RECIPE_DB_PATH)

Usage:
    from config import get_image_enrichment_config

    settings = get_image_enrichment_config()
    print(settings['batch_size'])

A missing config.yaml means "use defaults". An unreadable or invalid one is a
setup failure and raises ValueError before any batch runs.
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


# =============================================================================
# PATHS
# =============================================================================

# Project root directory (where this file lives)
PROJECT_ROOT = Path(__file__).parent

# Data directory - THE canonical location for all runtime data
DATA_DIR = PROJECT_ROOT / "data"

# Config path - ONE location, no fallbacks
CONFIG_PATH = DATA_DIR / "config.yaml"


# =============================================================================
# USER CONFIGURATION LOADING
# =============================================================================

def _load_user_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load user configuration from data/config.yaml.

    Args:
        config_path: Override the config location (tests, --config)

    Returns:
        Dict containing user configuration (empty when no file exists)

    Raises:
        ValueError: If the YAML is invalid or not a mapping
    """
    config_path = Path(config_path) if config_path else CONFIG_PATH

    if not config_path.exists():
        return {}

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(
            f"\n{'='*60}\n"
            f"ERROR: config.yaml has invalid YAML syntax\n"
            f"{'='*60}\n"
            f"File: {config_path}\n"
            f"Error: {e}\n"
            f"{'='*60}"
        ) from e

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError(
            f"\n{'='*60}\n"
            f"ERROR: config.yaml must contain a mapping at the top level\n"
            f"{'='*60}\n"
            f"File: {config_path}\n"
            f"{'='*60}"
        )

    return config


# Load user config at module initialization (FAIL FAST on broken YAML)
USER_CONFIG = _load_user_config()

# Use standard logging for config.py (foundational module)
logger = logging.getLogger(__name__)


# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================
"""
The recipes table lives in a SQLite database. Schema creation and the CSV
import are handled by the loader; this job only reads candidates and writes
the image column.
"""

DEFAULT_DB_PATH = DATA_DIR / "recipes.db"


def get_database_path() -> str:
    """
    Resolve the recipe database path.

    Priority order:
    1. Environment variable RECIPE_DB_PATH
    2. config.yaml database.path
    3. data/recipes.db
    """
    env_path = os.getenv("RECIPE_DB_PATH", "").strip()
    if env_path:
        return env_path

    database_section = USER_CONFIG.get('database') or {}
    file_path = database_section.get('path')
    if file_path:
        return str(file_path)

    return str(DEFAULT_DB_PATH)


# =============================================================================
# IMAGE ENRICHMENT CONFIGURATION
# =============================================================================

# Fixed sentinel written for recipes whose source page returns 404.
# Shared by every broken link so the value is recognisable in the API output.
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/600x400/FF9933/FFFFFF?text=Recipe+Image"

# Identity header sent with every page request (plain clients get blocked)
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

IMAGE_ENRICHMENT_DEFAULTS = {
    'batch_size': 50,            # Candidates processed before re-checking remaining count
    'total_batches': 10,         # Hard ceiling on batches per invocation
    'request_timeout_ms': 10000, # Page fetch timeout
    'pacing_delay_ms': 400,      # Delay after every candidate
    'placeholder_image_url': PLACEHOLDER_IMAGE_URL,
    'user_agent': DEFAULT_USER_AGENT,
}

_POSITIVE_INT_KEYS = ('batch_size', 'total_batches', 'request_timeout_ms')
_NON_NEGATIVE_INT_KEYS = ('pacing_delay_ms',)
_NON_BLANK_STR_KEYS = ('placeholder_image_url', 'user_agent')


def get_image_enrichment_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Get image enrichment configuration with sensible defaults.

    Values from config.yaml (section ``image_enrichment``) replace the
    defaults, and ``overrides`` (CLI flags) replace both. ``None`` values in
    overrides are ignored so unset flags keep the file/default value.

    Returns config dict with keys:
    - batch_size: int
    - total_batches: int
    - request_timeout_ms: int
    - pacing_delay_ms: int
    - placeholder_image_url: str
    - user_agent: str

    Raises:
        ValueError: If any value is out of range or of the wrong type
    """
    user_config = USER_CONFIG.get('image_enrichment') or {}
    if not isinstance(user_config, dict):
        raise ValueError("config.yaml image_enrichment must be a mapping")

    unknown = sorted(set(user_config) - set(IMAGE_ENRICHMENT_DEFAULTS))
    if unknown:
        logger.warning(f"⚠️ Ignoring unknown image_enrichment keys: {unknown}")
        user_config = {k: v for k, v in user_config.items() if k in IMAGE_ENRICHMENT_DEFAULTS}

    merged = {**IMAGE_ENRICHMENT_DEFAULTS, **user_config}
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    validate_image_enrichment_config(merged)
    return merged


def validate_image_enrichment_config(settings: Dict[str, Any]) -> None:
    """
    Validate an image enrichment settings dict.

    Raises:
        ValueError: Listing every invalid field
    """
    problems = []

    for key in _POSITIVE_INT_KEYS:
        value = settings.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            problems.append(f"{key} must be a positive integer (got {value!r})")

    for key in _NON_NEGATIVE_INT_KEYS:
        value = settings.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            problems.append(f"{key} must be a non-negative integer (got {value!r})")

    for key in _NON_BLANK_STR_KEYS:
        value = settings.get(key)
        if not isinstance(value, str) or not value.strip():
            problems.append(f"{key} must be a non-empty string")

    if problems:
        raise ValueError(
            f"\n{'='*60}\n"
            f"ERROR: invalid image_enrichment configuration\n"
            f"{'='*60}\n"
            + "\n".join(f"  - {p}" for p in problems)
            + f"\n{'='*60}"
        )


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
"""Centralized logging configuration for all modules."""
LOG_DIR = DATA_DIR / "logs"

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "WARNING",
            "formatter": "standard",
            "stream": "ext://sys.stderr"
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "detailed",
            "filename": str(LOG_DIR / "recipe_images.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf-8"
        }
    },
    "root": {
        "level": "DEBUG",
        "handlers": ["console", "file"]
    }
}


def print_config_summary(settings: Optional[Dict[str, Any]] = None) -> None:
    """
    Print a summary of the current configuration.
    Useful for debugging and verification.
    """
    settings = settings or get_image_enrichment_config()

    print("\n" + "=" * 60)
    print("📋 CONFIGURATION SUMMARY")
    print("=" * 60)
    print(f"Database:           {get_database_path()}")
    print(f"Batch size:         {settings['batch_size']}")
    print(f"Total batches:      {settings['total_batches']}")
    print(f"Request timeout:    {settings['request_timeout_ms']} ms")
    print(f"Pacing delay:       {settings['pacing_delay_ms']} ms")
    print(f"Placeholder image:  {settings['placeholder_image_url']}")
    print("=" * 60 + "\n")


# =============================================================================
# MODULE SELF-TEST
# =============================================================================

if __name__ == "__main__":
    print_config_summary()
