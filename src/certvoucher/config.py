"""Application configuration for the voucher distribution service.

Reads runtime settings from environment variables with sensible defaults.
All configuration is centralised here; no other module reads os.environ directly.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings

#: Sender used for winner emails when ``FROM_EMAIL`` is not set.
DEFAULT_VOUCHER_SENDER: str = "vouchers@yourdomain.com"

#: Sender used for operator alerts when ``FROM_EMAIL`` is not set.
DEFAULT_ALERT_SENDER: str = "alerts@yourdomain.com"


class AppConfig(BaseSettings):
    """Application-wide configuration loaded from environment variables.

    Attributes:
        supabase_url: Base URL of the hosted data store project.
        supabase_key: API key sent with every data store request.
        resend_api_key: API key for the email-sending service.
        resend_api_url: Base URL of the email-sending API.
        from_email: Sender address.  When unset each role falls back to its
            own default (see :attr:`voucher_sender` and :attr:`alert_sender`).
        admin_email: Operator address that receives alerts.
        http_timeout: Timeout in seconds for outbound HTTP calls.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """

    supabase_url: str = ""
    supabase_key: str = ""
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com"
    from_email: str | None = None
    admin_email: str | None = None
    http_timeout: float = 10.0
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is one of the accepted Python logging levels.

        Args:
            v: The raw log level string from the environment.

        Returns:
            The uppercased log level string if valid.

        Raises:
            ValueError: If the value is not a recognised logging level.
        """
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}; got {v!r}")
        return upper

    @field_validator("from_email", "admin_email")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat an empty or whitespace-only address as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def voucher_sender(self) -> str:
        """Sender address for winner emails."""
        return self.from_email or DEFAULT_VOUCHER_SENDER

    @property
    def alert_sender(self) -> str:
        """Sender address for operator alerts."""
        return self.from_email or DEFAULT_ALERT_SENDER


def get_config() -> AppConfig:
    """Return the application configuration, resolved from environment variables.

    Environment variables read (case-insensitive):
        SUPABASE_URL / SUPABASE_KEY: Data store endpoint and key.
        RESEND_API_KEY / RESEND_API_URL: Email API key and base URL.
        FROM_EMAIL: Sender address (default: per-role fallback).
        ADMIN_EMAIL: Operator alert recipient (default: unset).
        HTTP_TIMEOUT: Outbound HTTP timeout in seconds (default: ``10.0``).
        LOG_LEVEL: Logging verbosity level (default: ``INFO``).

    Returns:
        An :class:`AppConfig` instance populated from the environment.
    """
    return AppConfig(
        _env_file=".env",
        _env_file_encoding="utf-8",
    )
