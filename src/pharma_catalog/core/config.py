# src/pharma_catalog/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "Pharma Catalog API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Storage: jede SQLAlchemy-Async-URL, standardmäßig eine lokale SQLite-Datei
    database_url: str = "sqlite+aiosqlite:///./catalog.db"

    # CORS
    cors_origins: list[str] = Field(default=["*"])

    # OpenAPI-Doku unter /docs nur auf Wunsch ausliefern
    serve_docs: bool = False

    # Request-Body-Limit (1 MiB)
    max_body_bytes: int = Field(default=1_048_576, gt=0)

    # Suche
    default_search_limit: int = Field(default=50, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
