import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):

    port: int = 8000
    environment: str = "development"


    postgres_user: str = os.getenv("POSTGRES_USER", "user")
    postgres_password: str = os.getenv("POSTGRES_PASSWORD", "password")
    postgres_db: str = os.getenv("POSTGRES_DB", "proctoring_db")
    postgres_host: str = os.getenv("POSTGRES_HOST", "db")
    postgres_port: int = 5432

    # Full URL wins over the postgres parts (sqlite for local runs and tests)
    sqlalchemy_database_uri: Optional[str] = None

    @property
    def database_url(self) -> str:
        if self.sqlalchemy_database_uri:
            return self.sqlalchemy_database_uri
        return f"postgresql://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"


    cors_origins_str: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins_str.split(",")]


    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    cache_default_ttl: int = 600
    # 0 disables analytics caching
    analytics_cache_ttl: int = 30

    slow_request_threshold: float = 1.0


    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
    celery_task_always_eager: bool = False


    recordings_dir: str = os.getenv("RECORDINGS_DIR", "/app/uploads/recordings")
    max_recording_chunk_size: int = 100 * 1024 * 1024


    session_write_retries: int = 3
    live_recent_activity_limit: int = 5


    default_timezone: str = "UTC"
    timezone_display_format: str = "%d.%m.%Y, %H:%M:%S"


    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
