"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOCGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Paths
    data_dir: Path = Path("data")
    reviews_file: Path = Path("data/reviews.json")
    sources_file: Path = Path("config/sources.json")
    database_url: str = "sqlite+aiosqlite:///data/docgate.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: str = "http://localhost:5173"
    heartbeat_seconds: float = 30.0

    # Crawling
    crawl_concurrency: int = 5
    crawl_delay_ms: int = 500
    fetch_timeout_seconds: float = 30.0
    robots_timeout_seconds: float = 5.0
    user_agent: str = "docgate/1.0 (+https://github.com/docgate/docgate)"

    # Chunking (characters)
    chunk_min_chars: int = 100
    chunk_max_chars: int = 800
    chunk_overlap_chars: int = 50

    # Remote ingest
    ingest_api_url: str = "http://localhost:8789/api/v1/rag"
    ingest_api_token: str = ""
    ingest_timeout_seconds: float = 60.0
    upload_batch_size: int = 100
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    crawler_version: str = "1.0.0"

    def ensure_dirs(self) -> None:
        """Create the data directories used by the stores."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.reviews_file.parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
