"""
OAuth Handshake Service
=======================

Runs the three-legged OAuth 1.0a handshake for an agent:

1. ``initiate`` obtains a request token from the provider, creates an OAuth
   session keyed by a fresh random state token, stashes the request-token
   secret server-side, and returns the provider's authorization URL.
2. The user authorizes the app on the provider, which redirects back with
   the request token and a verifier; the callback URL carries the state token
   and agent id.
3. ``handle_callback`` checks the session and the stashed secret, exchanges
   the verifier for a permanent access token, looks up the account identity
   and stores the credentials.

Handshake state lives only in the session cache. The stashed request-token
secret is deleted whether the callback succeeds or fails, so a request token
can be exchanged at most once. A state token is bound to the request token it
was issued with and completes at most one handshake. Any failure also
discards the session; the caller must start over with ``initiate``.
"""

import logging
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from auth.credential_service import CredentialService
from auth.session_cache import SessionCache
from errors import (
    InvalidOrExpiredSession,
    InvalidRequest,
    MalformedCallback,
    MissingTempCredentials,
    UnsupportedService,
)
from plugins import ServiceConnector

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"
TEMP_PREFIX = "temp:"
DEFAULT_SESSION_TTL = timedelta(minutes=15)


class OAuthSessionStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"


@dataclass
class OAuthSession:
    state: str
    agent_id: str
    service_name: str
    created_at: datetime
    expires_at: datetime
    request_token: Optional[str] = None
    return_url: Optional[str] = None
    status: OAuthSessionStatus = OAuthSessionStatus.PENDING

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass
class TempOAuthSecret:
    agent_id: str
    request_token: str
    token_secret: str
    created_at: datetime


@dataclass
class ConnectionInitiation:
    """What the caller gets back from ``initiate``; never includes the token secret."""
    auth_url: str
    state: str
    request_token: str

    def to_dict(self) -> Dict[str, str]:
        return {"authUrl": self.auth_url, "state": self.state, "requestToken": self.request_token}


@dataclass
class CallbackResult:
    service_name: str
    identity: Dict[str, Any] = field(default_factory=dict)
    return_url: Optional[str] = None
    success: bool = True

    def redirect_url(self) -> Optional[str]:
        """The return URL with the outcome appended, or None if no return URL was given."""
        if not self.return_url:
            return None
        return add_query_params(self.return_url, {"success": "true", "service": self.service_name})

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "user": self.identity}


def generate_oauth_state() -> str:
    """Generate a 32-byte random state token, hex encoded."""
    return secrets.token_hex(32)


def add_query_params(url: str, params: Mapping[str, str]) -> str:
    """Append query parameters to a URL, keeping any it already has."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def session_key(state: str) -> str:
    return f"{SESSION_PREFIX}{state}"


def temp_secret_key(agent_id: str, service: str, request_token: str) -> str:
    return f"{TEMP_PREFIX}{agent_id}:{service}:{request_token}"


class OAuthService:
    """
    OAuth 1.0a handshake engine.

    Args:
        cache (SessionCache): Store for sessions and request-token secrets
        credential_service (CredentialService): Where completed credentials go
        connectors (Mapping[str, ServiceConnector]): Connector per service name
        session_ttl (timedelta): How long a handshake may take end to end
    """

    def __init__(
        self,
        cache: SessionCache,
        credential_service: CredentialService,
        connectors: Mapping[str, ServiceConnector],
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
    ):
        self.cache = cache
        self.credential_service = credential_service
        self.connectors = dict(connectors)
        self.session_ttl = session_ttl

    def get_connector(self, service: str) -> ServiceConnector:
        connector = self.connectors.get(service)
        if connector is None:
            raise UnsupportedService(f"OAuth is not supported for {service}")
        return connector

    # Sessions

    def create_session(
        self,
        agent_id: str,
        service: str,
        state: str,
        request_token: Optional[str] = None,
        return_url: Optional[str] = None,
    ) -> OAuthSession:
        now = self.cache.now()
        session = OAuthSession(
            state=state,
            agent_id=agent_id,
            service_name=service,
            request_token=request_token,
            return_url=return_url,
            created_at=now,
            expires_at=now + self.session_ttl,
        )
        self.cache.put(session_key(state), session, ttl=self.session_ttl)
        logger.info(f"OAuth session created for {service} (agent {agent_id})")
        return session

    def validate_session(
        self,
        state: str,
        agent_id: Optional[str] = None,
        service: Optional[str] = None,
    ) -> Optional[OAuthSession]:
        """
        Return the live session for a state token, or None.

        A session is returned only while it has not expired, and only if it
        belongs to ``agent_id`` and ``service`` when those are given.
        """
        session = self.cache.get(session_key(state))
        if session is None:
            return None

        if not session.is_valid(self.cache.now()):
            self.cache.delete(session_key(state))
            return None

        if agent_id is not None and session.agent_id != agent_id:
            logger.warning(f"OAuth state presented by agent {agent_id} belongs to another agent")
            return None
        if service is not None and session.service_name != service:
            logger.warning(f"OAuth state for {session.service_name} presented for {service}")
            return None

        return session

    def delete_session(self, state: str, agent_id: Optional[str] = None) -> None:
        """Delete a session, but only the caller's own when ``agent_id`` is given."""
        session = self.cache.get(session_key(state))
        if session is None:
            return
        if agent_id is not None and session.agent_id != agent_id:
            return
        self.cache.delete(session_key(state))
        logger.info(f"OAuth session deleted for {session.service_name}")

    def _mark_session(self, session: OAuthSession, status: OAuthSessionStatus) -> None:
        remaining = session.expires_at - self.cache.now()
        if remaining <= timedelta(0):
            self.cache.delete(session_key(session.state))
            return
        self.cache.put(session_key(session.state), replace(session, status=status), ttl=remaining)

    # Temporary request-token secrets

    def store_temp_secret(self, agent_id: str, service: str, request_token: str, token_secret: str) -> None:
        secret = TempOAuthSecret(
            agent_id=agent_id,
            request_token=request_token,
            token_secret=token_secret,
            created_at=self.cache.now(),
        )
        self.cache.put(temp_secret_key(agent_id, service, request_token), secret, ttl=self.session_ttl)

    def get_temp_secret(self, agent_id: str, service: str, request_token: str) -> Optional[TempOAuthSecret]:
        return self.cache.get(temp_secret_key(agent_id, service, request_token))

    def delete_temp_secret(self, agent_id: str, service: str, request_token: str) -> None:
        self.cache.delete(temp_secret_key(agent_id, service, request_token))

    # Handshake

    async def initiate(
        self,
        agent_id: str,
        service: str,
        return_url: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> ConnectionInitiation:
        """
        Start a handshake.

        Args:
            agent_id (str): The agent the credentials will belong to
            service (str): Service name, e.g. "twitter"
            return_url (Optional[str]): Where to send the user after the callback
            callback_url (Optional[str]): Callback endpoint the provider redirects to;
                defaults to the connector's configured one

        Returns:
            ConnectionInitiation: Authorization URL, state token and request token

        Raises:
            UnsupportedService: If no connector handles ``service``
            ConfigurationError: If the connector lacks its API keys
            ProviderError: If the provider does not issue a request token
        """
        if not agent_id:
            raise InvalidRequest("Agent ID is required")

        connector = self.get_connector(service)
        connector.ensure_configured()

        state = generate_oauth_state()
        base_callback = callback_url or connector.get_callback_url()
        provider_callback = add_query_params(base_callback, {"agentId": agent_id, "state": state}) if base_callback else None

        logger.info(f"Initiating {service} OAuth for agent {agent_id}")
        authorization = await connector.get_authorization_url(provider_callback)

        self.create_session(agent_id, service, state, request_token=authorization.request_token, return_url=return_url)
        self.store_temp_secret(agent_id, service, authorization.request_token, authorization.request_token_secret)

        logger.info(f"{service} OAuth awaiting callback for agent {agent_id}")
        return ConnectionInitiation(
            auth_url=authorization.auth_url,
            state=state,
            request_token=authorization.request_token,
        )

    async def handle_callback(
        self,
        request_token: Optional[str],
        verifier: Optional[str],
        state: Optional[str],
        agent_id: Optional[str],
        service: str = "twitter",
    ) -> CallbackResult:
        """
        Finish a handshake and store the resulting credentials.

        Raises:
            MalformedCallback: If any required parameter is missing
            UnsupportedService: If no connector handles ``service``
            InvalidOrExpiredSession: If the state token is unknown, expired, not the agent's,
                or was issued with a different request token
            MissingTempCredentials: If the request-token secret is gone (expired or already used)
            ProviderAuthError: If the provider rejects the verifier
            ProviderError: If the provider fails otherwise
            StoreUnavailable: If the credentials cannot be persisted
        """
        missing = [
            name for name, value in (
                ("oauth_token", request_token),
                ("oauth_verifier", verifier),
                ("state", state),
                ("agentId", agent_id),
            ) if not value
        ]
        if missing:
            if agent_id and request_token:
                self.delete_temp_secret(agent_id, service, request_token)
            if state and agent_id:
                self.delete_session(state, agent_id)
            raise MalformedCallback(f"Missing required OAuth parameters: {', '.join(missing)}")

        session = None
        try:
            connector = self.get_connector(service)

            session = self.validate_session(state, agent_id, service)
            if session is None:
                raise InvalidOrExpiredSession("Invalid or expired OAuth session")
            if session.request_token != request_token:
                logger.warning(f"OAuth state for agent {agent_id} presented with a request token it was not issued for")
                raise InvalidOrExpiredSession("OAuth state does not match the request token")

            temp_secret = self.get_temp_secret(agent_id, service, request_token)
            if temp_secret is None:
                raise MissingTempCredentials("Temporary credentials not found or expired")

            access_token, access_token_secret = await connector.exchange_token(
                request_token, temp_secret.token_secret, verifier
            )
            identity = await connector.fetch_identity(access_token, access_token_secret)
            credentials = connector.build_credentials(access_token, access_token_secret, identity)
            self.credential_service.store_credentials(agent_id, service, credentials)
        except Exception as e:
            logger.error(f"{service} OAuth callback failed for agent {agent_id}: {type(e).__name__}: {str(e)}")
            self.delete_session(state, agent_id)
            if session is not None and session.request_token and session.request_token != request_token:
                self.delete_temp_secret(agent_id, service, session.request_token)
            raise
        finally:
            self.delete_temp_secret(agent_id, service, request_token)

        # The session stays in the cache, marked authorized, until it expires.
        # It only ever matches its own request token, whose secret is gone.
        self._mark_session(session, OAuthSessionStatus.AUTHORIZED)
        logger.info(f"{service} OAuth completed for agent {agent_id} (@{identity.get('username')})")

        return CallbackResult(
            service_name=service,
            identity=identity,
            return_url=session.return_url,
        )
