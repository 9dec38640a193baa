# config.py
"""Lead relay configuration.

Values come from the process environment, after a local ``.env`` file (if
any) has been loaded into it. Nothing is required at import time; each entry
point calls the ``validate_*`` method for the settings it actually needs.

Usage:
    >>> from lead_relay.config import config
    >>> config.WEBHOOK_MAX_ATTEMPTS
    60
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a setting is missing or malformed."""


class RelayConfig:
    """Settings for the relay, read from environment variables.

    Attributes:
        SUPABASE_URL: Base URL of the hosted auth/database service.
        SUPABASE_SERVICE_ROLE_KEY: Service credential used to resolve caller tokens.
        DATABASE_URL: PostgreSQL connection string for lead and log tables.
        DEFAULT_WEBHOOK_URL: Automation endpoint used when no override is given.
        WEBHOOK_MAX_ATTEMPTS: Delivery attempts before giving up.
        WEBHOOK_TIMEOUT_SECONDS: Per-attempt HTTP timeout.
        MAX_RESULTS_CAP: Upper bound applied to the requested result count.
        DEFAULT_LOCALE: Locale for caller-facing messages when the user has none.
    """

    def __init__(self) -> None:
        self.APP_ENV = self._get("APP_ENV", "dev")
        self.DEBUG = self._get_bool("DEBUG")
        self.LOG_LEVEL = self._get("LOG_LEVEL", "INFO")

        # Hosted auth service
        self.SUPABASE_URL = self._get("SUPABASE_URL")
        self.SUPABASE_SERVICE_ROLE_KEY = self._get("SUPABASE_SERVICE_ROLE_KEY")
        self.AUTH_TIMEOUT_SECONDS = self._get_float("AUTH_TIMEOUT_SECONDS", 10.0)

        # Database
        self.DATABASE_URL = self._get("DATABASE_URL")
        self.DATABASE_POOL_SIZE = self._get_int("DATABASE_POOL_SIZE", 5)
        self.DATABASE_MAX_OVERFLOW = self._get_int("DATABASE_MAX_OVERFLOW", 10)

        # Webhook delivery
        self.DEFAULT_WEBHOOK_URL = self._get(
            "DEFAULT_WEBHOOK_URL", "https://localhost/webhook/map-pro"
        )
        self.WEBHOOK_MAX_ATTEMPTS = self._get_int("WEBHOOK_MAX_ATTEMPTS", 60)
        self.WEBHOOK_TIMEOUT_SECONDS = self._get_float("WEBHOOK_TIMEOUT_SECONDS", 30.0)

        # Search limits and messages
        self.MAX_RESULTS_CAP = self._get_int("MAX_RESULTS_CAP", 50)
        self.DEFAULT_LOCALE = self._get("DEFAULT_LOCALE", "ar")

        # HTTP server
        self.API_HOST = self._get("API_HOST", "0.0.0.0")
        self.API_PORT = self._get_int("API_PORT", 8080)

    @staticmethod
    def _get(name: str, default: str = "") -> str:
        return os.environ.get(name, default)

    @staticmethod
    def _get_bool(name: str) -> bool:
        """True only when the variable is set to 'true' or '1' (any case)."""
        return os.environ.get(name, "").lower() in ("true", "1")

    @staticmethod
    def _get_int(name: str, default: int) -> int:
        """Read an integer setting.

        Raises:
            ConfigError: If the variable is set but is not an integer.
        """
        raw = os.environ.get(name)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from e

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        """Read a numeric setting.

        Raises:
            ConfigError: If the variable is set but is not a number.
        """
        raw = os.environ.get(name)
        if raw is None or not raw.strip():
            return default
        try:
            return float(raw)
        except ValueError as e:
            raise ConfigError(f"{name} must be a number, got {raw!r}") from e

    def validate_for_auth(self) -> None:
        """Check the settings needed to resolve caller tokens.

        Raises:
            ConfigError: If the auth service URL or credential is missing.
        """
        for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
            if not getattr(self, name):
                raise ConfigError(f"{name} is required for caller authentication")

    def validate_for_database(self) -> None:
        """Check the settings needed to write leads and webhook logs.

        Raises:
            ConfigError: If DATABASE_URL is missing.
        """
        if not self.DATABASE_URL:
            raise ConfigError("DATABASE_URL is required for database operations")

    def validate_for_delivery(self) -> None:
        """Check the webhook retry settings.

        Raises:
            ConfigError: If the attempt count or timeout is not positive.
        """
        if self.WEBHOOK_MAX_ATTEMPTS < 1:
            raise ConfigError("WEBHOOK_MAX_ATTEMPTS must be at least 1")
        if self.WEBHOOK_TIMEOUT_SECONDS <= 0:
            raise ConfigError("WEBHOOK_TIMEOUT_SECONDS must be positive")

    def validate_all(self) -> None:
        """Check everything ``lead-relay serve`` needs.

        Raises:
            ConfigError: On the first missing or invalid setting.
        """
        self.validate_for_auth()
        self.validate_for_database()
        self.validate_for_delivery()
        if self.is_production() and self.DEFAULT_WEBHOOK_URL.startswith("https://localhost"):
            logger.warning(
                "DEFAULT_WEBHOOK_URL still points at localhost",
                extra={"webhook_url": self.DEFAULT_WEBHOOK_URL},
            )

    def get_database_connection_args(self) -> dict:
        """Pool settings passed to the SQLAlchemy engine."""
        return {
            "pool_size": self.DATABASE_POOL_SIZE,
            "max_overflow": self.DATABASE_MAX_OVERFLOW,
            "pool_pre_ping": True,
        }

    def is_production(self) -> bool:
        return self.APP_ENV.lower() in ("prod", "production")

    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("dev", "development")


config = RelayConfig()
