from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration using Pydantic BaseSettings.

    Loads configuration from POS_* environment variables and a .env file (if present).
    A single instance is built by the application factory and handed to the
    components that need it; nothing reads configuration from module state.
    """
    # Storage
    database_url: str = "sqlite:///./pos.db"

    # Sessions
    secret_key: str = "change-me"
    session_algorithm: str = "HS256"
    session_expire_minutes: int = 720
    session_cookie_name: str = "session"

    # Configured admin credential and service token
    admin_username: str = "admin"
    admin_password: str = "admin"
    admin_token: str = ""

    # Earnings are bucketed into calendar days of this zone
    timezone: str = "UTC"

    # Receipts
    public_base_url: str = "http://localhost:8088"
    shop_name: str = ""
    shop_address1: str = ""
    shop_address2: str = ""

    # Application
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8088

    model_config = SettingsConfigDict(env_prefix="POS_", env_file=".env", env_file_encoding="utf-8")


def service_token(settings: Settings) -> Optional[str]:
    """Return the configured service token, or None when the token is disabled."""
    return settings.admin_token or None
