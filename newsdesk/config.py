from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from pathlib import Path
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # System
    LOG_LEVEL: str = "INFO"
    DATA_DIR: Path = Path("./data")
    DATABASE_FILE: str = "newsdesk.db"

    # Cache
    CACHE_ENABLED: bool = True
    CACHE_FILE: str = "cache.db"
    CACHE_TIMEOUT_SECONDS: float = 2.0

    # Cache TTLs (seconds)
    FEED_CACHE_TTL: int = 3600
    NEWS_CACHE_TTL: int = 300
    ARTICLE_LIST_CACHE_TTL: int = 432000  # 5 days
    ARTICLE_CACHE_TTL: int = 3600
    SIMILAR_CACHE_TTL: int = 1800
    HEADLINE_CACHE_TTL: int = 432000

    # Ranking
    FRESHNESS_THRESHOLD_HOURS: float = 36.0
    STALE_SCORE_DECAY: float = 0.3
    RELEVANCE_AMPLIFICATION: float = 4.5

    # Articles
    BREAKING_WINDOW_MINUTES: int = 30
    DEFAULT_SOURCE_NAME: str = "Ghanaian web"

    # Web
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:3002",
    ])
    WEB_HOST: str = "0.0.0.0"
    WEB_PORT: int = 8001

    @property
    def database_path(self) -> Path:
        return self.DATA_DIR / self.DATABASE_FILE

    @property
    def cache_path(self) -> Path:
        return self.DATA_DIR / self.CACHE_FILE

    def ensure_dirs(self):
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)

settings = Settings()
