from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./devicedonation.db"
    database_echo: bool = False

    # Session tokens
    secret_key: str = "change-me-in-production"
    session_max_age_seconds: int = 60 * 60 * 8

    # Request lifecycle
    max_open_requests: int = 3
    message_max_length: int = 500
    notes_max_length: int = 500
    deactivate_device_on_completion: bool = True

    # Pagination (pages are 1-indexed)
    default_page_size: int = 10
    max_page_size: int = 100

    # Optional admin account created at startup (empty = skip)
    admin_email: str = ""
    admin_password: str = ""
    admin_name: str = "Administrator"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
