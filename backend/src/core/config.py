"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
import sys
from dotenv import load_dotenv


# Tests run against their own defaults, never a developer .env
is_testing = "pytest" in sys.modules or os.getenv("PYTEST_VERSION") is not None

if not is_testing:
    backend_dir = pathlib.Path(__file__).resolve().parent.parent.parent
    for env_path in (backend_dir / ".env", backend_dir.parent / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            break


def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "sqlite:///./clinic_scheduling.db"
    )

DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Reference zone for "today" when a clinician has no zone of their own
CLINIC_TIME_ZONE = os.getenv("CLINIC_TIME_ZONE", "America/Chicago")

# Availability defaults applied when a clinician has never saved settings
DEFAULT_TIME_GRANULARITY_MINUTES = int(os.getenv("DEFAULT_TIME_GRANULARITY_MINUTES", "60"))
DEFAULT_MIN_NOTICE_DAYS = int(os.getenv("DEFAULT_MIN_NOTICE_DAYS", "1"))
DEFAULT_MAX_ADVANCE_DAYS = int(os.getenv("DEFAULT_MAX_ADVANCE_DAYS", "30"))
