"""
Feature Flags Configuration

Centralized settings for the cohortdesk core.
All values are loaded from environment variables (and a local .env file).
"""
import os

from dotenv import load_dotenv

from cohortdesk.orm.mentor import MIN_COHORTS_PER_MENTOR, MAX_COHORTS_PER_MENTOR

load_dotenv()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable, falling back on junk."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class FeatureFlags:
    """
    Runtime switches for the core.

    To add a new flag:
    1. Add it here as a class property
    2. Load it from environment variable
    3. Use it in your code
    """

    # Cohort capacity: hard block (True) or logged warning only (False)
    ENFORCE_COHORT_CAPACITY: bool = get_bool_env('COHORTDESK_ENFORCE_COHORT_CAPACITY', True)

    # max_cohorts given to new mentors when the form leaves it blank
    DEFAULT_MAX_COHORTS: int = get_int_env('COHORTDESK_DEFAULT_MAX_COHORTS', 3)

    # Reject DROPPED without metadata {"confirmed": true}. Off: the UI owns the prompt
    REQUIRE_DROP_CONFIRMATION: bool = get_bool_env('COHORTDESK_REQUIRE_DROP_CONFIRMATION', False)

    DEBUG: bool = get_bool_env('COHORTDESK_DEBUG', False)
    LOG_LEVEL: str = os.getenv('COHORTDESK_LOG_LEVEL', 'INFO').upper()

    def default_max_cohorts(self) -> int:
        """DEFAULT_MAX_COHORTS clamped to the allowed mentor range."""
        return min(max(self.DEFAULT_MAX_COHORTS, MIN_COHORTS_PER_MENTOR), MAX_COHORTS_PER_MENTOR)

    @classmethod
    def get_all_flags(cls) -> dict:
        """Get all settings as a dictionary."""
        return {
            key: value
            for key, value in cls.__dict__.items()
            if not key.startswith('_') and isinstance(value, (bool, int, str))
        }


# Singleton instance
feature_flags = FeatureFlags()
