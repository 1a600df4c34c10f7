"""
Configuration management for the SQL Arena auth service
"""
from enum import Enum
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Posture(str, Enum):
    """Deployment mode gating security-sensitive defaults"""

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TEST = "test"


class Settings(BaseSettings):
    """Auth service configuration loaded from environment variables"""

    # Server Configuration
    ENVIRONMENT: Posture = Posture.DEVELOPMENT
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"

    # Token Configuration
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_HOURS: int = 24

    # Password hashing work factor
    BCRYPT_ROUNDS: int = 12

    # Database Configuration
    DATABASE_URL: Optional[str] = None
    DB_HOST: Optional[str] = None
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_NAME: Optional[str] = None
    DB_PORT: int = 5432
    DB_POOL_SIZE: int = 20
    DB_POOL_TIMEOUT: float = 2.0
    DB_IDLE_TIMEOUT: int = 30

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == Posture.PRODUCTION

    @property
    def database_url(self) -> str:
        """
        Resolve the SQLAlchemy URL.

        DATABASE_URL wins; otherwise a PostgreSQL URL is built from the DB_*
        parameters, and a local SQLite file is used when none are set.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.DB_HOST:
            return URL.create(
                "postgresql+psycopg2",
                username=self.DB_USER,
                password=self.DB_PASSWORD,
                host=self.DB_HOST,
                port=self.DB_PORT,
                database=self.DB_NAME,
            ).render_as_string(hide_password=False)
        return "sqlite:///./arena.db"


def get_settings() -> Settings:
    """Load a fresh settings object from the environment"""
    return Settings()
