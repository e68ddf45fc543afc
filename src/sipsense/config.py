"""SipSense configuration system — typed settings loaded from .env."""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_config_instance: "SipSenseConfig | None" = None

PUSH_BACKENDS = ("desktop", "ntfy", "none")


class SipSenseConfig(BaseSettings):
    """All SipSense settings, loaded from environment variables with SIPSENSE_ prefix."""

    # Quiet hours (local clock, 0-23)
    quiet_hours_enabled: bool = False
    quiet_hours_start: int = 22
    quiet_hours_end: int = 7

    # Sensor processing
    debounce_seconds: float = 2.0

    # Push channel
    push_enabled: bool = True
    push_backend: str = "desktop"
    push_cooldown_seconds: float = 300.0
    push_timeout: float = 10.0
    ntfy_server: str = "https://ntfy.sh"
    ntfy_topic: str = ""

    # Reminders
    waking_hours: int = 16

    # System
    log_level: str = "INFO"
    log_to_file: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SIPSENSE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def validate_push_backend(self) -> None:
        """Validate the configured push backend.

        Raises:
            ValueError: If the backend is unknown or ntfy has no topic.
        """
        if self.push_backend not in PUSH_BACKENDS:
            raise ValueError(
                f"Unknown push backend {self.push_backend!r}. "
                f"Set SIPSENSE_PUSH_BACKEND to one of: {', '.join(PUSH_BACKENDS)}"
            )

        if self.push_backend == "ntfy" and not self.ntfy_topic:
            raise ValueError(
                "ntfy push backend needs a topic. Set SIPSENSE_NTFY_TOPIC"
            )

        logger.info("Configured push backend: %s", self.push_backend)


def get_config() -> SipSenseConfig:
    """Get the shared SipSenseConfig instance.

    Returns:
        The SipSenseConfig loaded from environment.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = SipSenseConfig()
    return _config_instance
