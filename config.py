# config.py
import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Reads an env var, stripping whitespace and newlines left by secret stores."""
    value = os.environ.get(key)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _env_int(key: str, default: int) -> int:
    try:
        return int(_env(key, str(default)))
    except ValueError:
        logger.warning(f"{key} is not an integer, using {default}")
        return default


# GitHub source
GITHUB_TOKEN = _env('GITHUB_TOKEN')
GITHUB_REPOSITORY = _env('GITHUB_REPOSITORY')  # "owner/repo"

# Chat delivery
WEBHOOK_URL = _env('WEBHOOK_URL')
PROVIDER = _env('PROVIDER', 'slack')
CHANNEL = _env('CHANNEL')

# Map GitHub usernames to chat user IDs: "github-user:U024BE7LH,other-user:U0G9QF9C6"
GITHUB_PROVIDER_MAP = _env('GITHUB_PROVIDER_MAP', '')

# Shared secret for on-demand runs through POST /remind
REMINDER_TRIGGER_TOKEN = _env('REMINDER_TRIGGER_TOKEN')

# Reminder schedule (cron fields)
REMINDER_DAYS = _env('REMINDER_DAYS', 'mon-fri')
REMINDER_HOUR = _env_int('REMINDER_HOUR', 9)
REMINDER_MINUTE = _env_int('REMINDER_MINUTE', 0)

REQUIRED_SETTINGS = ['GITHUB_REPOSITORY', 'WEBHOOK_URL']

if not GITHUB_PROVIDER_MAP:
    logger.warning("GITHUB_PROVIDER_MAP is empty - reviewers will be mentioned by GitHub username")
