# opsconsole/core/config.py
"""Environment driven settings for the operations console."""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_number(name: str, default, cast=float):
    """Read a numeric environment variable, falling back to the default on bad input."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Invalid value {raw!r} for {name}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Non-positive value {raw!r} for {name}, using default {default}")
        return default
    return value


# ===== DATABASES =====
# Application database: request logs and query execution logs
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./opsconsole_config.db")

# Relational backend the query builder introspects and queries
WAREHOUSE_DATABASE_URL = os.getenv("WAREHOUSE_DATABASE_URL", "sqlite:///./opsconsole_warehouse.db")

APPLICATION_ID = os.getenv("APPLICATION_ID", "Unknown")

# ===== QUERY BUILDER =====
CATALOG_BATCH_SIZE = _env_number("QUERY_BUILDER_CATALOG_BATCH_SIZE", 10, int)
CATALOG_BATCH_DELAY = _env_number("QUERY_BUILDER_CATALOG_BATCH_DELAY", 0.1)
EXECUTION_TIMEOUT = _env_number("QUERY_BUILDER_EXECUTION_TIMEOUT", 30.0)
MAX_SESSIONS = _env_number("QUERY_BUILDER_MAX_SESSIONS", 100, int)
