"""Configuration management"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Document store
APP_ID: str = os.getenv("DEVSYSTEM_APP_ID", "default-app-id")
DB_PATH: Path = Path(os.getenv("DEVSYSTEM_DB_PATH", "./data.sqlite3"))
# "false" runs the dashboard without a store (degraded, in-memory only)
PERSISTENCE_ENABLED: bool = os.getenv("DEVSYSTEM_PERSISTENCE", "true").lower() == "true"
# How often a live subscription checks for writes from other sessions or processes
STORE_POLL_SECONDS: float = float(os.getenv("STORE_POLL_SECONDS", "0.5"))

# Identity
USER_ID: str = os.getenv("DEVSYSTEM_USER_ID", "")
AUTH_TOKEN: str = os.getenv("DEVSYSTEM_AUTH_TOKEN", "")

# Generative text
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_TIMEOUT_SECONDS: float = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "20"))

# Timings
SAVE_DEBOUNCE_SECONDS: float = float(os.getenv("SAVE_DEBOUNCE_SECONDS", "0.5"))
NOTIFICATION_TTL_SECONDS: float = float(os.getenv("NOTIFICATION_TTL_SECONDS", "5"))

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


def validate_config() -> None:
    """Validate timing configuration"""
    if SAVE_DEBOUNCE_SECONDS <= 0:
        raise ValueError("SAVE_DEBOUNCE_SECONDS must be positive")
    if NOTIFICATION_TTL_SECONDS <= 0:
        raise ValueError("NOTIFICATION_TTL_SECONDS must be positive")
    if GEMINI_TIMEOUT_SECONDS <= 0:
        raise ValueError("GEMINI_TIMEOUT_SECONDS must be positive")
    if STORE_POLL_SECONDS <= 0:
        raise ValueError("STORE_POLL_SECONDS must be positive")
