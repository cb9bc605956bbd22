"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB / MySQL ───────────────────────────────────────────────────────
    db_host: str = "tidb"
    db_port: int = 4000
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "fitfeed"
    # Full SQLAlchemy URL; wins over the parts above when set
    database_url: Optional[str] = None

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    recent_searches_max: int = 10
    recent_searches_ttl: int = 30 * 86400

    # ── MinIO (S3-compatible) ──────────────────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "user-content"
    minio_use_ssl: bool = False
    # Prefix used to build public object URLs: {base}/{bucket}/{path}
    storage_public_base_url: str = "http://localhost:9000"

    # ── Explore / ranking ──────────────────────────────────────────────────
    explore_page_size: int = 10
    explore_page_max: int = 50
    trending_routine_pool: int = 50
    trending_routine_top: int = 5
    routine_list_limit: int = 10
    suggested_users_limit: int = 10

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "fitfeed-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
