from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # Upper bound for a single report query, in seconds
    QUERY_TIMEOUT_SECONDS: float = 10.0

    # Introspection: rows sampled per table, and how long a discovered schema is reused (0 = never)
    SCHEMA_SAMPLE_ROWS: int = 5
    SCHEMA_CACHE_TTL_SECONDS: float = 0.0

    CORS_ORIGINS: List[str] = ["*"]
    ENVIRONMENT: str = "production"

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


# Create a single instance of the settings to use everywhere
settings = Settings()
