from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    SERVICE_NAME: str = "catalog-service"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "catalog"
    POSTGRES_USER: str = "catalog"
    POSTGRES_PASSWORD: str = "catalog"
    # Takes precedence over the POSTGRES_* values when set
    DATABASE_URL: Optional[str] = None
    DATABASE_ECHO: bool = False

    CACHE_MAXSIZE: int = 1024
    CACHE_TTL_SECONDS: int = 60
    REDIS_URL: Optional[str] = None

    CB_FAILURE_RATE_THRESHOLD: float = 50.0
    CB_WAIT_DURATION_SECONDS: float = 10.0
    CB_SLIDING_WINDOW_SIZE: int = 100
    CB_MINIMUM_NUMBER_OF_CALLS: int = 100
    CB_PERMITTED_CALLS_IN_HALF_OPEN: int = 10

    GRAPHIQL_ENABLED: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

@lru_cache
def get_settings() -> Settings:
    return Settings()
