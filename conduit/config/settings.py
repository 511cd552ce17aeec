"""
Application settings.

Loads settings from environment variables and .env file.
Prefix: CONDUIT_
"""

from pathlib import Path
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings, created once at process start."""

    model_config = SettingsConfigDict(
        env_prefix="CONDUIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Storage
    memory_dir: Path = Field(
        default=Path("~/.conduit/memories"),
        validate_default=True,
        description="Directory holding one markdown file per memory",
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")

    # Inference
    inference_backend: Literal["mock", "ollama", "none"] = Field(
        default="mock", description="Which inference capability to use"
    )
    ollama_base_url: str = Field(default="http://localhost:11434", description="Ollama API URL")
    ollama_chat_model: str = Field(default="llama3", description="Ollama model for chat")
    ollama_embed_model: str = Field(default="nomic-embed-text", description="Ollama model for embeddings")
    inference_timeout: int = Field(default=60, ge=1, description="Inference timeout in seconds")
    stub_embedding_dim: int = Field(default=64, ge=1, description="Vector size of stub embeddings")
    chat_memory_context: int = Field(
        default=5, ge=0, description="Recent memories passed to chat as context (0 disables)"
    )

    # Model catalog
    chat_model: str = Field(default="gpt-3.5-turbo", description="Default chat model id")
    embedding_model: str = Field(default="text-embedding-ada-002", description="Default embedding model id")
    extra_models: List[str] = Field(default_factory=list, description="Further catalog ids")
    model_owner: str = Field(default="conduit", description="owned_by label for catalog entries")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("memory_dir")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def model_ids(self) -> List[str]:
        """Catalog ids in listing order, without duplicates."""
        ids = [self.chat_model, self.embedding_model, *self.extra_models]
        return list(dict.fromkeys(ids))


def get_settings() -> Settings:
    """Build settings from the environment."""
    return Settings()
