"""Application configuration with environment variables."""
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Database
    DATABASE_URL: str = Field(validation_alias=AliasChoices("DATABASE_URL", "MONGO_URI"))
    DATABASE_NAME: str = "pilgrimage"
    DB_TIMEOUT_MS: int = 5000

    # Session token
    JWT_SECRET: str
    JWT_EXPIRES_HOURS: int = 5

    # Server
    PORT: int = 5000
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
