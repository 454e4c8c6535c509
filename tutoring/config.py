"""
Centralized configuration for the lesson engine.

Every setting is read from the environment through a small getter so tests
can override values with ``patch.dict("os.environ", ...)``.
"""

import os
from dataclasses import dataclass


DEFAULT_OPERATING_TIMEZONE = "Asia/Riyadh"
SUPPORTED_LANGUAGES = ("ar", "en")


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_operating_timezone() -> str:
    """The single timezone every class date/time is interpreted in."""
    return os.getenv("OPERATING_TIMEZONE", DEFAULT_OPERATING_TIMEZONE)


def get_default_language() -> str:
    """Language used when a user has not chosen one."""
    language = os.getenv("DEFAULT_LANGUAGE", "ar").lower()
    return language if language in SUPPORTED_LANGUAGES else "ar"


def get_low_credit_threshold() -> int:
    """Users with fewer credits than this get a low-balance notification."""
    return int(os.getenv("LOW_CREDIT_THRESHOLD", "2"))


def get_trial_duration_days() -> int:
    """Length of the trial period, counted from profile creation."""
    return int(os.getenv("TRIAL_DURATION_DAYS", "7"))


def get_brand_name() -> str:
    """Platform name shown in notification texts."""
    return os.getenv("BRAND_NAME", "Saudi English Club")


@dataclass(frozen=True)
class SmtpSettings:
    """SMTP transport configuration."""

    host: str
    port: int
    secure: bool
    user: str
    password: str
    from_email: str
    from_name: str

    @property
    def has_credentials(self) -> bool:
        return bool(self.user and self.password)


def get_smtp_settings() -> SmtpSettings:
    """Read SMTP settings. Missing credentials are valid (email disabled)."""
    return SmtpSettings(
        host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        port=int(os.getenv("SMTP_PORT", "587")),
        secure=os.getenv("SMTP_SECURE", "").lower() == "true",
        user=os.getenv("SMTP_USER", ""),
        password=os.getenv("SMTP_PASSWORD", ""),
        from_email=os.getenv("SMTP_FROM_EMAIL", "noreply@saudienglishclub.com"),
        from_name=os.getenv("SMTP_FROM_NAME", "Saudi English Club"),
    )


def get_sendgrid_api_key() -> str | None:
    """SendGrid API key; when set, email goes through SendGrid instead of SMTP."""
    return os.environ.get("SENDGRID_API_KEY") or None


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("SMTP_USER", "SMTP username for email notifications", False),
    ("SMTP_PASSWORD", "SMTP password for email notifications", False),
    ("SENTRY_DSN", "Sentry DSN for error reporting", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production() and required_in_dev:
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        return False, errors + warnings

    return True, warnings
