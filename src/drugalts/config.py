"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -----------------
    # Weaviate
    # -----------------
    weaviate_host: str = Field(
        default="localhost",
        description="Weaviate host",
    )
    weaviate_port: int = Field(
        default=8080,
        description="Weaviate HTTP port",
    )
    weaviate_grpc_port: int = Field(
        default=50051,
        description="Weaviate gRPC port",
    )
    weaviate_collection: str = Field(
        default="Medicine",
        description="Collection holding the medicine catalog",
    )

    # -----------------
    # Application
    # -----------------
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )

    # -----------------
    # Recommendation defaults
    # -----------------
    default_min_score: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum similarity score for an alternative",
    )
    default_max_results: int = Field(
        default=10,
        gt=0,
        description="Number of alternatives returned when not specified",
    )

    # -----------------
    # Tiered retrieval
    # -----------------
    tier1_limit: int = Field(
        default=500,
        gt=0,
        description="Cap on ingredient-matched candidates",
    )
    tier2_trigger: int = Field(
        default=100,
        ge=0,
        description="Expand to same-category sample when tier 1 finds fewer than this",
    )
    tier2_sample_size: int = Field(
        default=1500,
        gt=0,
        description="Size of the same-category random sample",
    )
    tier3_pool_ceiling: int = Field(
        default=2000,
        ge=0,
        description="Global fallback only runs when the tier 1+2 pool is smaller than this",
    )
    tier3_sample_size: int = Field(
        default=3000,
        gt=0,
        description="Size of the catalog-wide random sample",
    )
    store_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every catalog store call",
    )

    # -----------------
    # Scoring
    # -----------------
    dedup_policy: Literal["first_seen", "highest_score"] = Field(
        default="first_seen",
        description="Which duplicate survives: first in retrieval order or best scored",
    )
    scoring_workers: int = Field(
        default=1,
        ge=1,
        description="Threads used to score candidates (1 = inline)",
    )

    @property
    def weaviate_url(self) -> str:
        """Construct Weaviate URL."""
        return f"http://{self.weaviate_host}:{self.weaviate_port}"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience access
settings = get_settings()
