# plugins/twitter/auth/oauth.py
"""
Twitter OAuth Connector
=======================

This module implements the Twitter OAuth 1.0a connector for the connections
service. It runs the provider side of the three-legged handshake:

- Obtaining a request token and the authorization URL
- Exchanging the authorized request token and verifier for an access token
- Looking up the account behind an access token
- Testing stored credentials against the live API

The connector uses the tweepy library. tweepy is blocking, so every call runs
in a worker thread and is bounded by ``TWITTER_REQUEST_TIMEOUT_SECONDS``; a
call that exceeds it fails with ProviderError rather than hanging the request.
"""

import asyncio
import logging
from typing import Dict, Any, Optional, Tuple

import requests
import tweepy
from pydantic import ValidationError

from errors import ConfigurationError, ProviderAuthError, ProviderError
from plugins import AuthorizationRequest, ServiceConnector
from plugins.twitter.config import TwitterSettings, get_twitter_settings
from plugins.twitter.models import TwitterCredentials

# Set up logging
logger = logging.getLogger(__name__)

class TwitterOAuthConnector(ServiceConnector):
    """
    Connector for Twitter OAuth 1.0a.

    Class Attributes:
        service_name (str): The unique identifier for this connector
    """

    service_name = "twitter"
    display_name = "Twitter/X"
    icon = "twitter"
    color = "#1DA1F2"
    description = "Connect to post tweets and interact with your audience"
    credential_model = TwitterCredentials

    def __init__(self, settings: Optional[TwitterSettings] = None):
        """Initialize the connector with Twitter settings."""
        self.settings = settings or get_twitter_settings()
        if not self.is_configured():
            logger.warning("Twitter OAuth connector initialized without API keys")

    def is_configured(self) -> bool:
        return bool(self.settings.API_KEY and self.settings.API_SECRET_KEY)

    def ensure_configured(self) -> None:
        if not self.is_configured():
            raise ConfigurationError(
                "Twitter API credentials not configured. Please set TWITTER_API_KEY and TWITTER_API_SECRET_KEY."
            )

    def get_callback_url(self) -> Optional[str]:
        return self.settings.OAUTH_CALLBACK_URL

    def get_oauth_handler(self, callback_url: Optional[str] = None) -> tweepy.OAuth1UserHandler:
        """
        Get a Twitter OAuth handler instance.

        Args:
            callback_url (Optional[str]): Custom callback URL for the OAuth flow

        Returns:
            tweepy.OAuth1UserHandler: Configured OAuth handler
        """
        return tweepy.OAuth1UserHandler(
            self.settings.API_KEY,
            self.settings.API_SECRET_KEY,
            callback=callback_url or self.settings.OAUTH_CALLBACK_URL
        )

    def get_client(
        self,
        access_token: str,
        access_token_secret: str,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
    ) -> tweepy.Client:
        """Get a Twitter API v2 client acting as the given user."""
        return tweepy.Client(
            consumer_key=consumer_key or self.settings.API_KEY,
            consumer_secret=consumer_secret or self.settings.API_SECRET_KEY,
            access_token=access_token,
            access_token_secret=access_token_secret
        )

    async def _call(self, description: str, func, *args, **kwargs):
        timeout = self.settings.REQUEST_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Twitter {description} timed out after {timeout}s")
            raise ProviderError(f"Twitter {description} timed out after {timeout}s") from e

    async def get_authorization_url(self, callback_url: Optional[str] = None) -> AuthorizationRequest:
        """
        Obtain a request token and the URL that lets the user authorize it.

        Args:
            callback_url (Optional[str]): Custom callback URL for the OAuth flow

        Returns:
            AuthorizationRequest: The authorization URL and request token pair

        Raises:
            ConfigurationError: If the API keys are missing
            ProviderError: If Twitter does not issue a request token
        """
        self.ensure_configured()
        auth = self.get_oauth_handler(callback_url)

        try:
            auth_url = await self._call("request token", auth.get_authorization_url)
        except tweepy.TweepyException as e:
            logger.error(f"Twitter request token error: {str(e)}")
            raise ProviderError("Failed to obtain Twitter request token", detail=str(e))

        request_token = auth.request_token or {}
        oauth_token = request_token.get("oauth_token")
        oauth_token_secret = request_token.get("oauth_token_secret")
        if not oauth_token or not oauth_token_secret:
            raise ProviderError("Twitter returned an incomplete request token")

        return AuthorizationRequest(
            auth_url=auth_url,
            request_token=oauth_token,
            request_token_secret=oauth_token_secret,
        )

    async def exchange_token(self, request_token: str, request_token_secret: str, verifier: str) -> Tuple[str, str]:
        """
        Exchange the authorized request token for an access token.

        Raises:
            ProviderAuthError: If Twitter rejects the token or verifier
            ProviderError: If the call times out
        """
        self.ensure_configured()
        auth = self.get_oauth_handler()
        auth.request_token = {
            "oauth_token": request_token,
            "oauth_token_secret": request_token_secret,
        }

        try:
            access_token, access_token_secret = await self._call("access token exchange", auth.get_access_token, verifier)
        except tweepy.TweepyException as e:
            logger.error(f"Twitter OAuth error: {str(e)}")
            raise ProviderAuthError("Twitter rejected the authorization", detail=str(e))

        return access_token, access_token_secret

    async def fetch_identity(
        self,
        access_token: str,
        access_token_secret: str,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Get the Twitter account the access token belongs to.

        Returns:
            Dict[str, Any]: ``id``, ``username`` and ``name`` of the account

        Raises:
            ProviderAuthError: If Twitter rejects the access token
            ProviderError: If the lookup fails or returns no user
        """
        client = self.get_client(access_token, access_token_secret, consumer_key, consumer_secret)

        try:
            response = await self._call("user lookup", client.get_me, user_auth=True)
        except (tweepy.Unauthorized, tweepy.Forbidden) as e:
            logger.error(f"Twitter rejected access token: {str(e)}")
            raise ProviderAuthError("Twitter rejected the access token", detail=str(e), provider_status=e.response.status_code)
        except tweepy.HTTPException as e:
            logger.error(f"Error getting Twitter user info: {str(e)}")
            raise ProviderError("Failed to get Twitter user info", detail=str(e), provider_status=e.response.status_code)
        except (tweepy.TweepyException, requests.RequestException) as e:
            logger.error(f"Error getting Twitter user info: {str(e)}")
            raise ProviderError("Failed to get Twitter user info", detail=str(e))

        user = getattr(response, "data", None)
        if user is None:
            raise ProviderError("Twitter returned no user for the access token")

        return {
            "id": str(user.id),
            "username": user.username,
            "name": user.name,
        }

    def build_credentials(self, access_token: str, access_token_secret: str, identity: Dict[str, Any]) -> Dict[str, Any]:
        credentials = TwitterCredentials(
            api_key=self.settings.API_KEY,
            api_secret_key=self.settings.API_SECRET_KEY,
            access_token=access_token,
            access_token_secret=access_token_secret,
            user_id=identity.get("id"),
            username=identity.get("username"),
            name=identity.get("name"),
        )
        return credentials.model_dump(by_alias=True, exclude_none=True)

    async def test_connection(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        """
        Check stored credentials by looking up the account they belong to.

        Raises:
            ValueError: If the stored payload is not a Twitter credential
            ProviderAuthError: If Twitter rejects the credentials
            ProviderError: If the lookup fails
        """
        try:
            parsed = TwitterCredentials.model_validate(credentials)
        except ValidationError as e:
            raise ValueError("Stored Twitter credentials are incomplete") from e

        return await self.fetch_identity(
            parsed.access_token,
            parsed.access_token_secret,
            consumer_key=parsed.api_key,
            consumer_secret=parsed.api_secret_key,
        )
