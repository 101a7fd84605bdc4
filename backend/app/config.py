"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    APP_NAME: str = "Form Workflow Engine"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./workflows.db"
    SQLALCHEMY_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Redis Settings (Celery broker / result backend)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Execution Settings
    EXECUTION_BACKEND: str = "inprocess"  # inprocess or celery
    APPROVAL_EXPIRY_DAYS: int = 7
    APPROVAL_SWEEP_INTERVAL_MINUTES: int = 15
    MAX_CONDITION_VISITS: int = 25

    # Notification Settings
    APP_BASE_URL: str = "http://localhost:3000"
    DEFAULT_NOTIFICATION_RECIPIENT: str = "admin@company.com"
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_ADDRESS: str = "Workflow <workflow@localhost>"
    SMTP_USE_TLS: bool = True
    SLACK_WEBHOOK_URL: str = ""
    NOTIFICATION_WEBHOOK_URL: str = ""

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8080"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def notification_channels_config(self) -> dict:
        """Channel configs for the NotificationManager, only for configured transports."""
        config: dict = {}
        if self.SMTP_HOST:
            config["email"] = {
                "smtp_host": self.SMTP_HOST,
                "smtp_port": self.SMTP_PORT,
                "smtp_user": self.SMTP_USER,
                "smtp_password": self.SMTP_PASSWORD,
                "from_address": self.SMTP_FROM_ADDRESS,
                "use_tls": self.SMTP_USE_TLS,
            }
        if self.SLACK_WEBHOOK_URL:
            config["slack"] = {"webhook_url": self.SLACK_WEBHOOK_URL}
        if self.NOTIFICATION_WEBHOOK_URL:
            config["webhook"] = {"url": self.NOTIFICATION_WEBHOOK_URL}
        return config

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.

    Uses caching to ensure settings are loaded only once.

    Returns:
        Settings object with all configuration values
    """
    return Settings()
