"""
Glam CRM Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

LEAD_STORE_CHOICES = ('postgres', 'memory')


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration."""

    # Database — must be set in .env when the postgres store is used
    DATABASE_URL = os.getenv('DATABASE_URL')

    # Lead store backend: 'postgres' or 'memory'
    LEAD_STORE = (os.getenv('LEAD_STORE') or ('postgres' if DATABASE_URL else 'memory')).lower()
    if LEAD_STORE not in LEAD_STORE_CHOICES:
        _logger.critical(f"LEAD_STORE={LEAD_STORE!r} is not one of {LEAD_STORE_CHOICES}")
        raise ValueError(f"LEAD_STORE must be one of {', '.join(LEAD_STORE_CHOICES)}, got {LEAD_STORE!r}")
    if LEAD_STORE == 'postgres' and not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set — cannot use the postgres lead store.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")
    DB_CONNECT_TIMEOUT = int(os.getenv('DB_CONNECT_TIMEOUT', '5'))

    # Fall back to the demo dataset when live leads cannot be loaded
    DEMO_FALLBACK = _env_bool('DEMO_FALLBACK', 'true')

    # Timezone used for calendar days and timeframes
    TIMEZONE = os.getenv('TIMEZONE', 'America/Los_Angeles')

    # Level for the glamcrm logger tree (logs/glamcrm.log)
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').strip().upper() or 'INFO'

    # Schema requires an email; this sentinel stands in when none was given
    EMAIL_PLACEHOLDER = os.getenv('EMAIL_PLACEHOLDER', 'no-email@placeholder.invalid')

    # Dashboard
    SEARCH_RESULT_LIMIT = int(os.getenv('SEARCH_RESULT_LIMIT', '50'))
    SPARKLINE_BUCKETS = int(os.getenv('SPARKLINE_BUCKETS', '12'))

    # Booking inquiry notifications (Resend)
    RESEND_API_KEY = os.getenv('RESEND_API_KEY', '')
    RESEND_BASE_URL = os.getenv('RESEND_BASE_URL', 'https://api.resend.com')
    RESEND_FROM = os.getenv('RESEND_FROM', 'Bookings <onboarding@resend.dev>')
    SITE_CONTACT_TO = os.getenv('SITE_CONTACT_TO', 'delivered@resend.dev')


# Singleton instance
config = Config()
