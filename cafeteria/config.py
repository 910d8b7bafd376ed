"""
Configuration management for the cafeteria menu browser
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Cafeteria Menu"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./cafeteria.db"

    # Menu feeds
    MENU_DATA_DIR: str = "./data"  # one JSON file per location/date/period
    MISSING_VALUE_SENTINELS: list[str] = ["-", "N/A", "n/a", "NA"]

    # Presentation defaults
    DEFAULT_PERIOD: str = "Breakfast"
    DEFAULT_REVIEW_PERIOD: str = "Lunch"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
