# plugins/twitter/config.py
"""
Configuration for Twitter plugin
"""

from pydantic_settings import BaseSettings
from functools import lru_cache

class TwitterSettings(BaseSettings):
    """
    Twitter-specific settings

    These settings can be configured via environment variables
    prefixed with TWITTER_, e.g., TWITTER_API_KEY
    """
    # OAuth 1.0a consumer credentials
    API_KEY: str = ""
    API_SECRET_KEY: str = ""
    OAUTH_CALLBACK_URL: str = "http://localhost:3000/api/auth/twitter/callback"

    # Upper bound for any single call to Twitter
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    class Config:
        env_prefix = "TWITTER_"
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_twitter_settings():
    """
    Get the Twitter settings, cached to avoid reloading
    """
    return TwitterSettings()
