"""Application configuration using Pydantic Settings"""
from pydantic_settings import BaseSettings
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # App Configuration
    APP_NAME: str = "CodeLens"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: Optional[str] = None

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./codelens.db"

    # Key for hashing credentials before they are stored
    SECRET_KEY: str = "change-this-to-a-random-secret-key-in-production"

    # GitHub API
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TIMEOUT_SECONDS: float = 30.0
    GITHUB_MAX_RETRIES: int = 3
    GITHUB_RETRY_BACKOFF_SECONDS: float = 1.0
    WALK_STRICT: bool = False

    # Analysis pipeline
    MAX_FILE_SIZE_BYTES: int = 1024 * 1024
    ANALYSIS_CONCURRENCY: int = 4
    FILE_TIMEOUT_SECONDS: float = 300.0

    # Inference endpoint (OpenAI-compatible)
    LLM_PROVIDER: Literal["openai", "abacus", "local"] = "abacus"
    LLM_BASE_URL: Optional[str] = None
    LLM_API_KEY: str = ""
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_MAX_TOKENS: int = 2000
    LLM_TEMPERATURE: float = 0.2
    LLM_TIMEOUT_SECONDS: float = 120.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
