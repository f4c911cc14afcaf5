"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables with sensible defaults.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Database Configuration
    # ============================================================
    database_url: str = Field("", description="PostgreSQL connection URL")
    database_pool_size: int = Field(5, description="Database connection pool size")
    database_max_overflow: int = Field(10, description="Max overflow connections")

    # ============================================================
    # LLM / Embedding Configuration
    # ============================================================
    openai_api_key: Optional[str] = Field(None, description="OpenAI API key")
    openai_embedding_model: str = Field("text-embedding-3-small", description="OpenAI embedding model")
    embedding_dimensions: int = Field(1536, description="Vector dimensions of the embedding model")
    openai_chat_model: str = Field("gpt-4o-mini", description="Conversational model")
    chat_temperature: float = Field(0.7, description="Temperature for chat replies (0-1)")
    chat_max_tokens: int = Field(8192, description="Max output tokens per chat reply")

    # ============================================================
    # Blob Storage Configuration
    # ============================================================
    blob_storage_root: Optional[str] = Field(None, description="Local directory holding uploaded files")
    blob_storage_base_url: Optional[str] = Field(None, description="Base URL of the HTTP object store")
    blob_storage_bucket: str = Field("file-storage", description="Bucket name used in public storage URLs")
    blob_storage_timeout: float = Field(30.0, description="HTTP download timeout (seconds)")

    # ============================================================
    # Ingestion Configuration
    # ============================================================
    chunk_size: int = Field(1000, description="Maximum characters per chunk")
    chunk_overlap: int = Field(200, description="Characters shared by consecutive chunks")
    retrieval_top_k: int = Field(5, description="Passages returned per query")
    max_retries: int = Field(3, description="Attempts per external call before giving up")
    retry_delay_seconds: float = Field(1.0, description="Fixed delay between attempts")
    external_call_timeout_seconds: float = Field(60.0, description="Timeout per external call")
    processing_stale_after_seconds: int = Field(
        900,
        description="A 'processing' row older than this is treated as abandoned and re-attempted"
    )

    # ============================================================
    # API Configuration
    # ============================================================
    api_key: Optional[str] = Field(None, description="API key for authentication (required to serve the API)")
    api_port: int = Field(8000, description="API server port")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @property
    def database_url_normalized(self) -> str:
        """Convert postgres:// to postgresql:// (some hosts still hand out the old scheme)."""
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
