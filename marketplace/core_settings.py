from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    # Full SQLAlchemy URL; when unset the POSTGRES_* values are used
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "marketplace"
    POSTGRES_USER: str = "marketplace"
    POSTGRES_PASSWORD: str = "marketplace"

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24

    APP_URL: str = "http://localhost:8000"

    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "brl"

    REDIS_URL: Optional[str] = None
    DASHBOARD_CACHE_TTL: int = 30

    NEW_ORDER_LOOKBACK_SECONDS: int = 30
    CANCEL_REASON_MIN_LENGTH: int = 10
    STRICT_ORDER_TRANSITIONS: bool = False

    RUN_MIGRATIONS: bool = True
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    SERVICE_VERSION: str = "1.0.0"

    class Config:
        env_file = ".env"

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
