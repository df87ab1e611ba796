"""
Configuration for the payments ledger.

Values come from the environment (prefix PAYMENTS_) or a local .env file,
e.g. PAYMENTS_PROCESSING_POLICY=continue.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from models import ProcessingPolicy


class PaymentsSettings(BaseSettings):
    """Payments ledger runtime settings"""

    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # abort: first rejected event stops the run (exit code 1)
    # continue: rejected events are logged and skipped
    processing_policy: ProcessingPolicy = ProcessingPolicy.ABORT_ON_FIRST_ERROR

    # Logging goes to stderr; stdout is reserved for the CSV report
    log_level: str = "WARNING"


# Global configuration instance
config = PaymentsSettings()


def get_config() -> PaymentsSettings:
    """Get global configuration instance"""
    return config


def reload_config() -> PaymentsSettings:
    """Reload configuration from environment"""
    global config
    config = PaymentsSettings()
    return config
