"""Application configuration."""
from functools import lru_cache
from typing import Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = "development"
    database_url: str

    # Redis (for Celery and status events)
    redis_url: str = "redis://localhost:6379/0"
    publish_events: bool = True
    background_processing: bool = False

    # Anthropic
    anthropic_api_key: Optional[str] = None
    premium_model: str = "claude-3-opus-20240229"
    economy_model: str = "claude-3-haiku-20240307"
    llm_max_tokens: int = 2000
    llm_temperature: float = 0.1
    premium_column_threshold: int = 15
    premium_ambiguity_ratio: float = 0.5

    # Object storage
    storage_backend: str = "local"  # local, s3
    local_storage_dir: str = "/tmp/ingestion-uploads"
    s3_bucket_name: Optional[str] = None
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None

    # Pipeline
    max_upload_bytes: int = 50 * 1024 * 1024
    validation_warning_max_errors: int = 2
    processing_batch_size: int = 1000
    status_error_limit: int = 10
    learning_min_success_rate: float = 0.7
    learning_history_limit: int = 50

    # Dashboard id -> URL receiving pushed records; others only read standardized_records
    dashboard_endpoints: Dict[str, str] = {}
    dashboard_timeout_seconds: float = 5.0

    # Confidence levels per match type
    confidence_exact_alias: int = 95
    confidence_learned: int = 80
    confidence_substring: int = 75
    confidence_fallback: int = 50
    confidence_user_override: int = 100

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def confidence_table(self) -> dict[str, int]:
        """Confidence score keyed by match type."""
        return {
            "exact_alias": self.confidence_exact_alias,
            "learned": self.confidence_learned,
            "substring": self.confidence_substring,
            "fallback": self.confidence_fallback,
            "user_override": self.confidence_user_override,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
