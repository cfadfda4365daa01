"""FolderHub configuration: Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    app_name: str = "FolderHub"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Network
    host: str = "127.0.0.1"
    port: int = 8082
    api_prefix: str = "/api"
    cors_origins: list[str] = [
        "http://localhost:4200",
        "http://localhost:8082",
    ]

    # Auth
    secret_key: str = "change-me-in-prod"
    token_algorithm: str = "HS256"
    token_expire_minutes: int = 720  # 12 hours

    # Bootstrap admin, created when the users table is empty
    admin_username: str = "admin"
    admin_password: str = "admin"

    # Storage paths (relative resolved from backend/ at runtime)
    data_dir: str = "./data"
    storage_dir: str = "./data/storage"
    log_dir: str = "./data/logs"
    database_path: str = "./data/folderhub.db"

    # Uploads
    max_upload_mb: int = 100

    # Client defaults
    client_base_url: str = "http://localhost:8082/api"
    client_timeout_seconds: float = 30.0

    uvicorn_workers: int = 1
    max_db_connections: int = 5

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="FOLDERHUB_",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [o.strip() for o in value.split(",") if o.strip()]
        if isinstance(value, list):
            return value
        return ["http://localhost:4200"]

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Ensure data directories are absolute."""
        base = Path(__file__).resolve().parent.parent  # backend/
        for field in ("data_dir", "storage_dir", "log_dir", "database_path"):
            val = getattr(self, field)
            if not Path(val).is_absolute():
                setattr(self, field, str(base / val))
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
