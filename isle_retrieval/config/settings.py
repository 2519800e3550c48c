"""
Engine Settings
Environment-driven settings for embedding files, the embedding provider and logging.
"""

import logging
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """
    Retrieval engine settings.
    Load from environment variables (or a .env file).
    """

    # Embedding files
    embedding_index_path: str = Field(
        default="data/embeddings/embedding-index.json", alias="RETRIEVAL_EMBEDDING_INDEX_PATH"
    )
    embedding_vectors_path: str = Field(
        default="data/embeddings/embeddings.bin", alias="RETRIEVAL_EMBEDDING_VECTORS_PATH"
    )
    catalog_path: str = Field(default="data/places.json", alias="RETRIEVAL_CATALOG_PATH")

    # Seconds before a failed store load may be retried
    store_retry_interval: float = Field(default=300.0, alias="RETRIEVAL_STORE_RETRY_INTERVAL")

    # Query embedding provider (OpenAI-compatible)
    embedding_api_url: str = Field(
        default="https://api.openai.com/v1/embeddings", alias="RETRIEVAL_EMBEDDING_API_URL"
    )
    embedding_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    embedding_model: str = Field(default="text-embedding-3-small", alias="RETRIEVAL_EMBEDDING_MODEL")
    embedding_dimension: int = Field(default=1536, alias="RETRIEVAL_EMBEDDING_DIMENSION")
    embedding_timeout: float = Field(default=10.0, alias="RETRIEVAL_EMBEDDING_TIMEOUT")
    embedding_batch_size: int = Field(default=100, alias="RETRIEVAL_EMBEDDING_BATCH_SIZE")

    # Logging
    log_level: str = Field(default="INFO", alias="RETRIEVAL_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("embedding_timeout", "store_retry_interval")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be non-negative")
        return v

    @property
    def provider_configured(self) -> bool:
        """Whether an API key is available for the embedding provider."""
        return bool(self.embedding_api_key)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global engine settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level), format=LOG_FORMAT)
