"""
Configuration module.

Values are read once from the environment (and an optional .env file) at
import time.
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def get_env(key: str, default: str) -> str:
    """Get environment variable, falling back to default when unset or empty."""
    value = os.getenv(key)
    if not value:
        return default
    return value


def get_int_env(key: str, default: int) -> int:
    """Get an integer environment variable."""
    return int(get_env(key, str(default)))


# Redis result cache
REDIS_HOST = get_env("REDIS_HOST", "localhost")
# Accepts both "6380" and the legacy ":6380" form
REDIS_PORT = int(get_env("REDIS_PORT", "6380").lstrip(":"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", "")
REDIS_SSL = get_env("REDIS_SSL", "true").lower() == "true"
CACHE_TTL_SECONDS = get_int_env("CACHE_TTL_SECONDS", 24 * 60 * 60)

# Telemetry and logging
APPINSIGHTS_INSTRUMENTATIONKEY = os.getenv("APPINSIGHTS_INSTRUMENTATIONKEY", "")
LOG_FILE_LOCATION = os.getenv("LOG_FILE_LOCATION", "")
LOG_FILE_MAX_BYTES = get_int_env("LOG_FILE_MAX_BYTES", 500 * 1024 * 1024)
LOG_FILE_BACKUP_COUNT = get_int_env("LOG_FILE_BACKUP_COUNT", 3)

# HTTP server
APP_HOST = get_env("APP_HOST", "0.0.0.0")
APP_PORT = get_int_env("APP_PORT", 8080)
APP_READ_TIMEOUT = get_int_env("APP_READ_TIMEOUT", 60)
APP_WRITE_TIMEOUT = get_int_env("APP_WRITE_TIMEOUT", 120)
APP_SHUTDOWN_TIMEOUT = get_int_env("APP_SHUTDOWN_TIMEOUT", 10)
MAX_REQUEST_BODY_BYTES = get_int_env("MAX_REQUEST_BODY_BYTES", 1048576)

# Azure DevOps
ADO_BASE_URL = get_env("ADO_BASE_URL", "https://dev.azure.com")
ADO_API_VERSION = get_env("ADO_API_VERSION", "7.0")
ADO_REQUEST_TIMEOUT = float(get_env("ADO_REQUEST_TIMEOUT", "60"))

# Scan engine
SCAN_MAX_CONCURRENCY = get_int_env("SCAN_MAX_CONCURRENCY", 16)
