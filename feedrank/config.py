"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "social_feed"

    # Full SQLAlchemy async URL; overrides the TiDB fields when set
    # (e.g. "sqlite+aiosqlite:///./feed.db" for local runs).
    database_url: Optional[str] = None

    @property
    def tidb_url(self) -> str:
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or self.tidb_url

    # ── Quality scoring service ────────────────────────────────────────────
    quality_service_url: str = "http://quality-service:8001"
    quality_predict_path: str = "/predict"
    quality_timeout_seconds: float = 5.0

    # ── Hybrid ranking ─────────────────────────────────────────────────────
    quality_weight: float = 0.3
    personalization_weight: float = 0.7

    # ── Feed defaults ──────────────────────────────────────────────────────
    feed_page_size: int = 50
    explore_posts_per_interest: int = 5

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    tracing_enabled: bool = True
    service_name: str = "feed-ranking-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
