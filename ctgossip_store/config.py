from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:////tmp/gossip.sq3"
    SQLITE_BUSY_TIMEOUT: float = 30.0
    SQL_ECHO: bool = False

    # Pollination
    DEFAULT_NUM_POLLINATIONS_TO_RETURN: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"  # Allow extra environment variables


@lru_cache
def get_settings() -> Settings:
    return Settings()
