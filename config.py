"""Configuration management for the RoleReady API."""

from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

try:
    load_dotenv()
except (PermissionError, OSError):
    # .env may be unreadable in sandboxed environments
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    DATABASE_URL: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URL")
    DATABASE_NAME: str = Field(default="roleready", description="MongoDB database name")

    # Environment
    ROLEREADY_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Links embedded in emails
    APP_URL: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("APP_URL", "NEXT_PUBLIC_APP_URL"),
        description="Public URL of the web front end",
    )

    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")

    # Workflow limits
    MAX_BULK_RECIPIENTS: int = Field(default=200, description="Max recipients for one bulk email")
    MIN_MOTIVATION_CHARS: int = Field(default=50, description="Min mentor application motivation length")
    MIN_REJECTION_NOTE_CHARS: int = Field(default=10, description="Min skill rejection note length")
    MAX_VALIDATION_NOTE_CHARS: int = Field(default=500, description="Max skill validation note length")
    MAX_BENCHMARK_WEIGHT_TOTAL: int = Field(default=100, description="Max sum of active benchmark weights")
    CONSENT_VERSION: str = Field(default="v1.0", description="Current mentor role-change consent version")

    # Pagination
    DEFAULT_PAGE_SIZE: int = Field(default=20, description="Default page size for list endpoints")
    MAX_PAGE_SIZE: int = Field(default=100, description="Upper bound for the limit query parameter")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
