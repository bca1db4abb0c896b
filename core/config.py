from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    postgres_db: str = "thumbwatch"
    postgres_user: str = "thumbwatch"
    postgres_password: str = "thumbwatch"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    redis_host: str = "localhost"
    redis_port: int = 6379

    fetch_user_agent: str = "ThumbWatchBot/0.1 (+https://localhost)"
    fetch_timeout_seconds: float = 20.0

    # --- Object storage for decorated thumbnails ---
    object_store_root: str = "./data/thumbnails"
    object_store_public_base_url: str = "https://thumbs.video-to-markdown.com"

    # --- Thumbnail decoration ---
    thumbnail_overlay_fraction: float = 0.30
    thumbnail_overlay_inner_ratio: float = 0.9
    thumbnail_jpeg_quality: int = 90

    # --- Recheck backoff ---
    check_interval_ceiling_days: int = 16

    api_write_key: str = "thumbwatch-dev-key"
    api_cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    @property
    def postgres_dsn(self) -> str:
        return (
            f"dbname={self.postgres_db} user={self.postgres_user} "
            f"password={self.postgres_password} host={self.postgres_host} "
            f"port={self.postgres_port}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/0"

    @property
    def cors_origins(self) -> list[str]:
        origins = [origin.strip() for origin in self.api_cors_origins.split(",")]
        return [origin for origin in origins if origin]

@lru_cache
def get_settings() -> Settings:
    return Settings()
