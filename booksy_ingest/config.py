"""
Centralized configuration using Pydantic Settings.

All environment variables are loaded and validated here.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Salon database (shared with the main application)
    database_host: str = "postgres"
    database_port: int = 5432
    database_name: str = "salon"
    database_user: str = "booksy_ingest"
    database_password: str = ""
    database_connect_timeout: int = 10

    # Create tables on startup (disable when the main app owns migrations)
    init_schema_on_startup: bool = True

    # Shared secret the mailbox bridge sends with every webhook call
    booksy_webhook_secret: str = ""

    # Secret the authenticating gateway sends with tenant-scoped reads
    api_secret: str = ""

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Operator views
    pending_list_limit: int = 50
    recent_bookings_limit: int = 20

    @property
    def database_url(self) -> str:
        """PostgreSQL connection URL for the salon database."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
            f"?connect_timeout={self.database_connect_timeout}"
        )


# Global settings instance
settings = Settings()
