"""
Configuration module for pipbin.
Loads environment variables and provides the settings object.
"""
import os
from urllib.parse import urlparse

from dotenv import load_dotenv

from pipbin.errors import ConfigError

# Load environment variables from .env file
load_dotenv()

STORAGE_SCHEMES = ("redis", "rediss", "unix", "memory")


class Settings:
    """Application settings loaded from environment variables."""

    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    GUESSLANG_URL: str = os.getenv("GUESSLANG_URL", "")
    APP_DOMAIN: str = os.getenv("APP_DOMAIN", "http://localhost:8000")
    SSH_HOST: str = os.getenv("SSH_HOST", "localhost")
    SSH_PORT: str = os.getenv("SSH_PORT", "23234")
    SSH_HOST_KEY_PATH: str = os.getenv("SSH_HOST_KEY_PATH", ".ssh/id_ed25519")
    HTTP_HOST: str = os.getenv("HTTP_HOST", "0.0.0.0")
    HTTP_PORT: str = os.getenv("HTTP_PORT", "8000")
    MAX_PASTE_BYTES: str = os.getenv("MAX_PASTE_BYTES", str(512 * 1024))
    SHUTDOWN_TIMEOUT: str = os.getenv("SHUTDOWN_TIMEOUT", "30")
    DEBUG: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")

    def validate(self) -> None:
        """
        Check required values before anything starts serving.

        Raises:
            ConfigError: If a value is missing or malformed
        """
        if not self.DATABASE_URL:
            raise ConfigError("DATABASE_URL is not set")
        if urlparse(self.DATABASE_URL).scheme not in STORAGE_SCHEMES:
            raise ConfigError(f"DATABASE_URL has an unsupported scheme: {self.DATABASE_URL}")

        if not self.GUESSLANG_URL:
            raise ConfigError("GUESSLANG_URL is not set")
        parsed = urlparse(self.GUESSLANG_URL)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"GUESSLANG_URL is not an http(s) URL: {self.GUESSLANG_URL}")

        for name in ("SSH_PORT", "HTTP_PORT", "MAX_PASTE_BYTES", "SHUTDOWN_TIMEOUT"):
            self._positive_int(name)

    @property
    def ssh_port(self) -> int:
        return self._positive_int("SSH_PORT")

    @property
    def http_port(self) -> int:
        return self._positive_int("HTTP_PORT")

    @property
    def max_paste_bytes(self) -> int:
        return self._positive_int("MAX_PASTE_BYTES")

    @property
    def shutdown_timeout(self) -> int:
        return self._positive_int("SHUTDOWN_TIMEOUT")

    def _positive_int(self, name: str) -> int:
        raw = getattr(self, name)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
        if value < 1:
            raise ConfigError(f"{name} must be positive, got {value}")
        return value


settings = Settings()
