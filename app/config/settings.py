from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Relational store for model definitions and published tables
    database_url: str = "sqlite:///./model_builder.db"
    database_echo: bool = False

    # Supabase (authentication only)
    supabase_url: str = ""
    supabase_key: str = ""

    # Published schema snapshots: "local" writes JSON files, "s3" uploads to a bucket
    artifact_backend: str = "local"
    artifact_dir: str = "./published_models"

    # Used when artifact_backend is "s3"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_bucket_name: Optional[str] = None
    s3_prefix: str = "published-models"

    # Records API
    default_page_size: int = 10
    max_page_size: int = 100
    default_user_role: str = "Viewer"

    # App
    app_name: str = "model-builder"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )


settings = Settings()
