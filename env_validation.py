"""Environment variable validation and management."""

import os
import logging
from typing import Dict

logger = logging.getLogger(__name__)

class EnvironmentError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass

def validate_environment() -> None:
    """Validate critical environment variables.

    Raises EnvironmentError if validation fails.
    """
    defaults = {
        "GENERATION_API_URL": "http://localhost:4891/v1/chat/completions",
        "MODEL_ID": "llama3-8b-8192",
        "CACHE_SWEEP_INTERVAL": "1800",
    }

    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars = {
        "GENERATION_API_KEY": "Bearer token for the generation endpoint",
        "HEURISTICS_DIR": "Directory holding the heuristic JSON tables",
    }

    # Validate URLs
    url_vars = {"GENERATION_API_URL"}
    for var in url_vars:
        value = os.getenv(var)
        if value and not (value.startswith("http://") or value.startswith("https://")):
            raise EnvironmentError(f"Invalid URL format for {var}: {value}")

    numeric_vars: Dict[str, type] = {
        "LLM_TEMPERATURE": float,
        "LLM_TIMEOUT": float,
        "LLM_MAX_TOKENS": int,
        "CACHE_SWEEP_INTERVAL": float,
    }
    for var, kind in numeric_vars.items():
        value = os.getenv(var)
        if not value:
            continue
        try:
            number = kind(value)
        except ValueError:
            raise EnvironmentError(f"Invalid numeric value for {var}: {value}") from None
        if number < 0:
            raise EnvironmentError(f"{var} must not be negative: {value}")

    # Log optional variables status
    for var, description in optional_vars.items():
        if not os.getenv(var):
            logger.warning(f"Optional environment variable not set: {var} ({description})")

def get_env_float(name: str, default: float) -> float:
    """Get float value from environment variable, falling back on bad input."""
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default

def get_env_int(name: str, default: int) -> int:
    """Get integer value from environment variable, falling back on bad input."""
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default
