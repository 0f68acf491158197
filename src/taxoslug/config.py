from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TAXOSLUG_", env_file=".env", extra="ignore", populate_by_name=True
    )

    # Cache tiers (seconds)
    memory_ttl: float = Field(default=300.0, gt=0)
    durable_ttl: float = Field(default=1800.0, gt=0)
    key_prefix: str = "taxoslug"

    # Durable tier backend: none, memory, redis, file
    durable_backend: str = "memory"
    redis_url: str | None = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    durable_path: str = "/var/lib/taxoslug/cache"

    # Retry policy for taxonomy population
    retry_max_attempts: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_jitter: float = Field(default=1.0, ge=0)

    # Remote taxonomy source
    taxonomy_url: str | None = None
    fetch_timeout: float = Field(default=10.0, gt=0)

    # Observability
    enable_metrics: bool = True
    log_level: str = "INFO"
    log_json: bool = True

    @model_validator(mode="after")
    def _check_tier_ttls(self) -> Settings:
        # A restart must be able to warm the in-process tier from durable storage.
        if self.durable_ttl < self.memory_ttl:
            raise ValueError("durable_ttl must be greater than or equal to memory_ttl")
        return self

@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""
    return Settings()

settings = get_settings()
