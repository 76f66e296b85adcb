from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///connections.db"

    # Credential encryption (at least 32 characters, otherwise encryption is disabled)
    AUTH_ENCRYPTION_KEY: Optional[str] = None

    # OAuth handshake cache
    OAUTH_SESSION_TTL_MINUTES: int = 15
    OAUTH_CACHE_MAX_ENTRIES: int = 1000

    # Agent identity; a random UUID is assigned by the runtime when unset
    AGENT_ID: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"  # Allow extra fields from environment variables

@lru_cache()
def get_settings():
    return Settings()
