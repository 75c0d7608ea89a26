"""Application settings.

Environment variables are read through Pydantic Settings so local runs and
production deployments share one configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Core settings.

    - ``database_url``: local SQLite by default for a quick start.
    - ``storage_dir``: root of the local file store (theses, reviews, reports).
    - ``plagiarism_*``: similarity oracle endpoint and the attempt budget.
    - ``review_font_path``: TTF used for review PDFs (needed for non-Latin names).
    """

    database_url: str = Field(
        default="sqlite:///./storage/thesisflow.db", description="SQLAlchemy database URL"
    )
    storage_dir: Path = Field(
        default=Path("./storage/files"), description="Local file store root"
    )
    secret_key: str = Field(
        default="change-me-in-production", description="HMAC key for bearer tokens"
    )
    token_expire_hours: int = Field(default=24, ge=1)
    log_level: str = Field(default="INFO")

    plagiarism_api_url: Optional[str] = Field(
        default=None, description="Similarity oracle endpoint"
    )
    plagiarism_api_key: Optional[str] = Field(default=None)
    plagiarism_timeout_seconds: float = Field(default=30.0, gt=0)
    plagiarism_threshold: float = Field(
        default=15.0, ge=0, le=100, description="Highest similarity score still approved"
    )
    plagiarism_max_attempts: int = Field(default=3, ge=1)

    review_font_path: Optional[Path] = Field(
        default=None, description="TTF font for review PDFs; Helvetica when unset"
    )

    model_config = {
        "env_prefix": "THESISFLOW_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached global settings instance."""

    return Settings()
