"""
Core configuration for the Assessment Engine
Quiz authoring, attempts, grading and leaderboards
"""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field
import secrets

class Settings(BaseSettings):
    """Application settings"""

    # Application Settings
    APP_NAME: str = "Assessment Engine"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Timed quizzes, auto-grading and cohort leaderboards"
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Assessment Engine Backend"

    # Security
    SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ALGORITHM: str = "HS256"

    # Database
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: Optional[str] = Field(default=None)
    POSTGRES_PASSWORD: Optional[str] = Field(default=None)
    POSTGRES_SERVER: Optional[str] = Field(default=None)
    POSTGRES_PORT: str = Field(default="5432")
    POSTGRES_DB: Optional[str] = Field(default=None)
    DB_ECHO: bool = Field(default=False)
    SQLITE_BUSY_TIMEOUT: int = Field(default=30)  # seconds

    # Redis (notification fan-out)
    REDIS_URL: Optional[str] = Field(default=None)
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)

    # Notifications
    NOTIFIER_BACKEND: str = Field(default="log")  # log | redis
    NOTIFICATION_CHANNEL: str = Field(default="assessment.events")

    # CORS
    BACKEND_CORS_ORIGINS: str = Field(
        default="http://localhost:3000,http://localhost:8081"
    )

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    LOG_FILE: Optional[str] = Field(default=None)
    LOG_MAX_BYTES: int = Field(default=10485760)
    LOG_BACKUP_COUNT: int = Field(default=5)

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_REQUESTS: int = Field(default=100)
    RATE_LIMIT_PERIOD: int = Field(default=60)  # seconds

    class Config:
        env_file = ".env"
        case_sensitive = True

    def get_database_url(self) -> str:
        """Get database URL with proper formatting"""
        if self.DATABASE_URL:
            # Handle Render's postgres:// URLs
            db_url = self.DATABASE_URL
            if db_url.startswith("postgres://"):
                db_url = db_url.replace("postgres://", "postgresql://", 1)
            return db_url

        # Build URL from components
        if all([self.POSTGRES_USER, self.POSTGRES_PASSWORD,
                self.POSTGRES_SERVER, self.POSTGRES_DB]):
            return (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
                f"{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        # Default for development
        return "sqlite:///./assessment.db"

    def get_redis_url(self) -> str:
        """Get Redis URL"""
        if self.REDIS_URL:
            return self.REDIS_URL
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def get_cors_origins(self) -> list[str]:
        """Get CORS origins as list"""
        if self.BACKEND_CORS_ORIGINS:
            return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",")]
        return ["http://localhost:3000", "http://localhost:8081"]

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

settings = Settings()
