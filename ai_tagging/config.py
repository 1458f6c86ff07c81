"""Configuration management using Pydantic settings."""

from functools import lru_cache
from typing import Any, Literal

from pydantic_settings import BaseSettings

# Profile defaults for laptop and server deployments
PROFILE_DEFAULTS: dict[str, dict[str, Any]] = {
    "laptop": {
        "tagging_llm_model": "llama3.2:latest",
        # Database pool - modest for laptop hardware
        "db_pool_size": 5,
        "db_pool_max_overflow": 10,
        "db_pool_timeout": 30,
    },
    "server": {
        "tagging_llm_model": "qwen3:8b",
        "db_pool_size": 10,
        "db_pool_max_overflow": 20,
        "db_pool_timeout": 60,
    },
}


class Settings(BaseSettings):
    # Application
    app_name: str = "AI Asset Tagging"
    app_version: str = "0.3.0"
    debug: bool = True
    log_level: str = "INFO"
    log_format: str = "json"  # "json" for production, "console" for dev

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Profile Selection
    env_profile: Literal["laptop", "server"] = "laptop"

    # Database
    database_url: str = "sqlite:///./data/ai_tagging.db"
    db_pool_size: int | None = None  # None = use profile default
    db_pool_max_overflow: int | None = None  # None = use profile default
    db_pool_timeout: int | None = None  # None = use profile default

    # Internal trigger (process-queue endpoint)
    internal_api_key: str | None = None

    # Redis / ARQ Task Queue
    redis_url: str = "redis://localhost:6379"
    arq_job_timeout: int = 600
    arq_max_jobs: int = 4
    arq_health_check_interval: int = 60
    arq_dispatch_cron_seconds: int = 10  # Cron tick granularity for the ARQ dispatcher
    arq_scheduled_tagging_hour: int = 2  # Daily hour (UTC) of the scheduled tagging sweep

    # LLM (Ollama)
    ollama_base_url: str = "http://localhost:11434"
    tagging_llm_model: str | None = None  # None = use profile default
    tagging_llm_timeout_seconds: int = 60
    tagging_llm_max_retries: int = 2
    tagging_llm_temperature: float = 0.1

    # External asset-management API
    asset_api_base_url: str = "https://api.musedam.cc"
    asset_api_app_key: str | None = None
    asset_api_app_secret: str | None = None
    asset_api_timeout_seconds: int = 30
    asset_api_max_retries: int = 2
    credential_cache_ttl_seconds: int = 3600

    # Dispatcher
    dispatch_worker_enabled: bool = True
    dispatch_batch_size: int = 30
    dispatch_interval_seconds: float = 5.0

    # Scheduled tagging
    scheduled_tagging_batch_size: int = 100  # Max jobs per team per sweep

    # Score fusion
    scoring_damping_factor: float = 0.8

    def model_post_init(self, __context: Any) -> None:
        """Apply profile defaults after Pydantic initialization."""
        profile = PROFILE_DEFAULTS.get(self.env_profile, PROFILE_DEFAULTS["laptop"])

        for key, default_value in profile.items():
            current = getattr(self, key, None)
            if current is None:
                object.__setattr__(self, key, default_value)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
