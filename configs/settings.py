from __future__ import annotations

import os
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


ENVIRONMENTS = ("dev", "prod")

# Default number of completion attempts before a turn is given up on.
RETRY_COUNT = 8


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


class Settings:
    """
    Central configuration for plakait.

    Values are loaded once from environment variables (with sensible defaults)
    and then exposed via typed properties.
    """

    def __init__(self) -> None:
        # OpenAI / model configuration
        self._openai_api_key = os.getenv("OPENAI_API_KEY") or os.getenv(
            "OPENAI_SECRET_KEY"
        )
        self._openai_base_url = os.getenv("OPENAI_BASE_URL") or None
        self._openai_model = os.getenv("PLAKAIT_OPENAI_MODEL", "gpt-4o")
        self._max_tokens = _env_int("PLAKAIT_MAX_TOKENS", 512)
        self._temperature = _env_float("PLAKAIT_TEMPERATURE", 1.8)
        self._request_timeout = _env_float("PLAKAIT_REQUEST_TIMEOUT", 60.0)

        # Retry policy for completions
        self._retry_count = _env_int("PLAKAIT_RETRY_COUNT", RETRY_COUNT)
        self._backoff_base = _env_float("PLAKAIT_BACKOFF_BASE", 0.5)
        self._backoff_max = _env_float("PLAKAIT_BACKOFF_MAX", 8.0)
        self._max_elapsed = _env_float("PLAKAIT_MAX_ELAPSED", 60.0)

        # Session expiry
        self._session_max_age = _env_float("PLAKAIT_SESSION_MAX_AGE", 86400.0)
        self._sweep_interval = _env_float("PLAKAIT_SWEEP_INTERVAL", 300.0)

        self._environment = os.getenv("PLAKAIT_ENVIRONMENT", "dev").strip().lower()
        if self._environment not in ENVIRONMENTS:
            raise RuntimeError(
                "PLAKAIT_ENVIRONMENT must be `prod` or `dev`, "
                f"got {self._environment!r}."
            )

    # ------------------------------------------------------------------
    # OpenAI / model settings
    # ------------------------------------------------------------------

    @property
    def openai_api_key(self) -> str:
        if not self._openai_api_key:
            raise RuntimeError(
                "OPENAI_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        return self._openai_api_key

    @property
    def openai_base_url(self) -> Optional[str]:
        return self._openai_base_url

    @property
    def openai_model(self) -> str:
        return self._openai_model

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    @property
    def temperature(self) -> float:
        return self._temperature

    @property
    def request_timeout(self) -> float:
        return self._request_timeout

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def backoff_base(self) -> float:
        return self._backoff_base

    @property
    def backoff_max(self) -> float:
        return self._backoff_max

    @property
    def max_elapsed(self) -> float:
        return self._max_elapsed

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @property
    def session_max_age(self) -> float:
        return self._session_max_age

    @property
    def sweep_interval(self) -> float:
        return self._sweep_interval

    # ------------------------------------------------------------------
    # Environment-dependent server settings
    # ------------------------------------------------------------------

    @property
    def environment(self) -> str:
        return self._environment

    @property
    def is_prod(self) -> bool:
        return self._environment == "prod"

    @property
    def cors_origins(self) -> List[str]:
        if self.is_prod:
            return ["http://plakait.com", "https://plakait.com"]
        return ["http://localhost:5173", "https://localhost:5173"]

    @property
    def host(self) -> str:
        return "0.0.0.0" if self.is_prod else "127.0.0.1"

    @property
    def port(self) -> int:
        return 3000 if self.is_prod else 7878


settings = Settings()
