"""pvelxc runtime settings."""
import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PveSettings:
    """Connection and behaviour settings for talking to the API.

    Attributes:
        host: Base URL of the API, e.g. https://pve.example:8006
        token_id: API token id (user@realm!name)
        token_secret: API token secret
        verify_ssl: Verify the server certificate (default: True)
        timeout: HTTP timeout in seconds (default: 30)
        retry_attempts: Attempts for idempotent reads (default: 3)
        task_timeout: Seconds to wait for an async task to finish (default: 300)
        mock: Use the in-memory API instead of HTTP
    """

    host: str = "https://localhost:8006"
    token_id: str = ""
    token_secret: str = ""
    verify_ssl: bool = True
    timeout: int = 30
    retry_attempts: int = 3
    task_timeout: int = 300
    mock: bool = False

    @classmethod
    def from_env(cls) -> "PveSettings":
        """Create settings from PVE_* environment variables."""
        return cls(
            host=os.getenv("PVE_HOST", cls.host),
            token_id=os.getenv("PVE_TOKEN_ID", cls.token_id),
            token_secret=os.getenv("PVE_TOKEN_SECRET", cls.token_secret),
            verify_ssl=_env_bool("PVE_VERIFY_SSL", cls.verify_ssl),
            timeout=int(os.getenv("PVE_TIMEOUT", cls.timeout)),
            retry_attempts=int(os.getenv("PVE_RETRY_ATTEMPTS", cls.retry_attempts)),
            task_timeout=int(os.getenv("PVE_TASK_TIMEOUT", cls.task_timeout)),
            mock=_env_bool("PVE_MOCK", cls.mock),
        )


_settings: Optional[PveSettings] = None


def get_settings() -> PveSettings:
    """Get the global settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = PveSettings.from_env()
    return _settings


def set_settings(settings: Optional[PveSettings]):
    """Replace the global settings (None forces a reload from env)."""
    global _settings
    _settings = settings
