# fifo_pnl/config.py
"""Settings read from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from fifo_pnl.domain.errors import ConfigurationError

DEFAULT_API_URL = "https://api.kraken.com"
DEFAULT_DATABASE_URL = "sqlite:///./fifo_pnl_cache.db"


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    secret_key: str = ""
    api_url: str = DEFAULT_API_URL
    database_url: str = DEFAULT_DATABASE_URL
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()

        timeout = os.getenv("KRAKEN_REQUEST_TIMEOUT", "30")
        try:
            request_timeout = float(timeout)
        except ValueError:
            raise ConfigurationError(f"KRAKEN_REQUEST_TIMEOUT must be a number, got {timeout!r}") from None

        return cls(
            api_key=os.getenv("KRAKEN_API_KEY", ""),
            secret_key=os.getenv("KRAKEN_SECRET_KEY", ""),
            api_url=os.getenv("KRAKEN_API_URL", DEFAULT_API_URL),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            request_timeout=request_timeout,
        )

    def require_credentials(self) -> None:
        if not self.api_key:
            raise ConfigurationError("KRAKEN_API_KEY must be set")
        if not self.secret_key:
            raise ConfigurationError("KRAKEN_SECRET_KEY must be set")
