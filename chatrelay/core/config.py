"""Application configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    APP_NAME: str = Field(default="Chat Relay", env="APP_NAME")
    DOCS_PORT: int = Field(default=8000, env="DOCS_PORT")

    # Upstream completion provider
    UPSTREAM_API_URL: str = Field(
        default="https://api.z.ai/api/paas/v4/chat/completions",
        env="UPSTREAM_API_URL",
    )
    UPSTREAM_API_KEY: str = Field(default="", env="UPSTREAM_API_KEY")
    UPSTREAM_MODEL: str = Field(default="glm-4.5-flash", env="UPSTREAM_MODEL")
    UPSTREAM_TEMPERATURE: float = Field(
        default=0.3, env="UPSTREAM_TEMPERATURE", ge=0, le=2
    )
    UPSTREAM_MAX_TOKENS: int = Field(
        default=1024, env="UPSTREAM_MAX_TOKENS", ge=1, le=8192
    )
    UPSTREAM_ACCEPT_LANGUAGE: str = Field(
        default="es-CO,es", env="UPSTREAM_ACCEPT_LANGUAGE"
    )

    # Relay policy
    CONTEXT_WINDOW_MESSAGES: int = Field(
        default=16, env="CONTEXT_WINDOW_MESSAGES", ge=1, le=256
    )  # Only the most recent messages are forwarded upstream
    STREAM_TIMEOUT_SECONDS: float = Field(
        default=30.0, env="STREAM_TIMEOUT_SECONDS", gt=0
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=20.0, env="REQUEST_TIMEOUT_SECONDS", gt=0
    )

    # Session runtime (client side)
    RELAY_URL: str = Field(
        default="http://localhost:8000/api/chat", env="RELAY_URL"
    )
    STORAGE_URL: str = Field(
        default="sqlite:///./chat_storage.db", env="STORAGE_URL"
    )
    STORAGE_KEY: str = Field(default="chat-storage", env="STORAGE_KEY")
    MAX_ATTACHMENTS: int = Field(default=5, env="MAX_ATTACHMENTS", ge=1, le=20)
    MAX_ATTACHMENT_SIZE_MB: int = Field(
        default=10, env="MAX_ATTACHMENT_SIZE_MB", ge=1, le=100
    )

    # Authentication settings
    AUTH_TOKEN: str = Field(default="", env="AUTH_TOKEN")

    # Environment
    ENVIRONMENT: str = Field(default="development", env="ENVIRONMENT")
    LOG_LEVEL: str = Field(default="DEBUG", env="LOG_LEVEL")
    DEBUG: bool = Field(default=True, env="DEBUG")

    class Config:
        env_file = ".env"


settings = Settings()
