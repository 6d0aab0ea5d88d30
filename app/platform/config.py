from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Site Upgrade"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True

    # ── Logging ─────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    LOG_DIR: str = "logs"

    # ── Cache (Redis document store) ────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_KEY_PREFIX: str = "site_grade:"
    CACHE_TTL_SECONDS: Optional[int] = None  # None keeps entries forever

    # ── Exa (scraping) ──────────────────────────
    EXA_API_KEY: Optional[str] = None
    EXA_BASE_URL: str = "https://api.exa.ai"
    EXA_TIMEOUT: float = 60.0
    EXA_SUBPAGES: int = 10
    EXA_MAX_CHARACTERS: int = 5000

    # ── Anthropic (grading) ─────────────────────
    ANTHROPIC_API_KEY: Optional[str] = None
    GRADING_MODEL: str = "claude-sonnet-4-20250514"
    GRADING_FALLBACK_MODEL: str = "claude-3-7-sonnet-20250219"
    GRADING_MAX_TOKENS: int = 8000

    # "local" grades in-process, "http" reads frames from GRADING_API_URL
    GRADING_TRANSPORT: Literal["local", "http"] = "local"
    GRADING_API_URL: str = "http://localhost:8000/api/v1/grade/llm-content"
    GRADING_TIMEOUT: float = 100.0

    # Start scraping while the cache lookup is still in flight
    SPECULATIVE_SCRAPE: bool = True

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
