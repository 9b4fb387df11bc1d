from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Accessify Insight API"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    API_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["*"]

    # ── Database ────────────────────────────────
    DATABASE_URL: str

    # ── Scanners ────────────────────────────────
    CHROMEDRIVER_PATH: Optional[str] = None
    LIGHTHOUSE_BINARY: str = "lighthouse"
    SCAN_NAVIGATION_TIMEOUT_MS: int = 30000
    SCAN_ANALYSIS_TIMEOUT_SECONDS: int = 120

    # ── History ─────────────────────────────────
    HISTORY_LIMIT: int = 10

    # ── Logging ─────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
