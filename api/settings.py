"""
API settings (Pydantic Settings).

Read from the environment (and the project's .env file, if present):
- STORE_BACKEND: "memory" (default) or "supabase"
- BOOKING_HORIZON_DAYS: how far ahead open-ended offers can be booked (default 90)
- LOG_LEVEL: logging level name (default INFO)

SUPABASE_URL / SUPABASE_KEY are read by repositories/client.py, and only when
the supabase backend is used.
"""

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

from domain.offer import DEFAULT_BOOKING_HORIZON_DAYS

# .env at the project root (parent of api/)
_env_path = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    store_backend: Literal["memory", "supabase"] = "memory"
    booking_horizon_days: int = DEFAULT_BOOKING_HORIZON_DAYS
    log_level: str = "INFO"

    class Config:
        env_file = _env_path
        extra = "ignore"

    @field_validator("store_backend", mode="before")
    @classmethod
    def normalize_backend(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()


settings = Settings()
