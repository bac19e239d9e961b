"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application settings
    environment: str = "development"
    log_level: str = "INFO"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./diksuchi.db"
    auto_migrate: bool = True
    database_echo: bool = False

    # Authentication (HS256 tokens issued by the auth service)
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # AI credit defaults, used to seed the default policy record
    default_initial_credits: int = 50
    default_daily_limit: int = 50

    # Custom project quota
    default_project_quota: int = 1
    quota_request_price: float = 299.0  # Price of one additional custom project slot
    quota_request_currency: str = "INR"

    # Optimistic-lock retries before a write surfaces as a transient failure
    ledger_max_retries: int = 3

    # Number of history entries shown to end users
    history_page_size: int = 50

    # CORS Configuration
    # Comma-separated list of allowed origins. In production, set to your domain.
    cors_origins: str = "http://localhost:5173"
    cors_allow_credentials: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
