"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "ArenaBook"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://arenabook:arenabook@db:5432/arenabook"
    database_echo: bool = False

    # Redis (Celery broker)
    redis_url: str = "redis://redis:6379/0"

    # Auth
    access_token_expire_minutes: int = 60
    jwt_algorithm: str = "HS256"

    # Email / SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_from: str = "noreply@arenabook.io"
    staff_notification_email: str = "bookings@arenabook.io"

    # Facility
    timezone: str = "Europe/London"
    default_window_start: str = "09:00"
    default_window_end: str = "21:00"
    guest_lead_time_days: int = 2
    recurring_generation_weeks: int = 4
    half_court_sport: str = "Basketball"

    model_config = {"env_prefix": "AB_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
