"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

# Largest worker count accepted by the thread directive.
MAX_THREADS = 2000


class Settings(BaseSettings):
    quadotsu_env: str = "development"
    quadotsu_log_level: str = "info"

    # Default thread directive: 0 = default degree, -1 = sequential
    quadotsu_threads: int = Field(default=0, ge=-1, le=MAX_THREADS)

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
