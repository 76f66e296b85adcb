"""
Test Credential Service
=======================

Encrypted storage, atomic upsert, soft revocation and the distinct failure
modes of the credential store.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from auth.credential_service import CredentialService, parse_service_name
from auth.encryption_service import EncryptionService
from database import init_db
from errors import DecryptionError, StoreUnavailable, UnsupportedService
from models import CredentialStatus, ServiceCredential, ServiceName, utcnow

pytestmark = [pytest.mark.unit]

AGENT = "agent-1"
TWITTER_PAYLOAD = {
    "apiKey": "test_api_key",
    "apiSecretKey": "test_api_secret_key",
    "accessToken": "t1",
    "accessTokenSecret": "s1",
    "userId": "42",
    "username": "alice",
}


def broken_session_factory():
    """A session factory whose sessions fail like an unreachable database."""
    session = MagicMock()
    session.__enter__.return_value = session
    session.__exit__.return_value = False
    error = OperationalError("SELECT 1", {}, Exception("connection refused"))
    session.execute.side_effect = error
    session.query.side_effect = error
    return session


class TestCredentialService:
    """Test cases for the credential store."""

    def test_store_and_get(self, credential_service):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)

        assert credential_service.get_credentials(AGENT, "twitter") == TWITTER_PAYLOAD
        assert credential_service.has_credentials(AGENT, "twitter")

    def test_payload_is_encrypted_at_rest(self, credential_service, session_factory):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)

        with session_factory() as db:
            record = db.query(ServiceCredential).one()

        assert "t1" not in record.credentials
        assert "alice" not in record.credentials
        assert record.status == CredentialStatus.ACTIVE
        assert record.is_active is True
        assert record.service_name == ServiceName.TWITTER

    def test_get_missing_returns_none(self, credential_service):
        assert credential_service.get_credentials(AGENT, "twitter") is None
        assert not credential_service.has_credentials(AGENT, "twitter")

    def test_credentials_are_scoped_per_agent(self, credential_service):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)
        assert credential_service.get_credentials("agent-2", "twitter") is None

    def test_restore_replaces_payload_in_place(self, credential_service, session_factory):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)
        updated = dict(TWITTER_PAYLOAD, accessToken="t2")
        credential_service.store_credentials(AGENT, "twitter", updated)

        with session_factory() as db:
            assert db.query(ServiceCredential).count() == 1
        assert credential_service.get_credentials(AGENT, "twitter")["accessToken"] == "t2"

    def test_unsupported_service(self, credential_service):
        with pytest.raises(UnsupportedService):
            credential_service.store_credentials(AGENT, "myspace", {"token": "x"})
        with pytest.raises(UnsupportedService):
            parse_service_name("myspace")

    def test_invalid_twitter_payload_is_rejected(self, credential_service):
        with pytest.raises(ValueError):
            credential_service.store_credentials(AGENT, "twitter", {"accessToken": "t1"})
        with pytest.raises(ValueError):
            credential_service.store_credentials(AGENT, "twitter", dict(TWITTER_PAYLOAD, cookie="x"))

    def test_services_without_a_model_accept_any_object(self, credential_service):
        credential_service.store_credentials(AGENT, "discord", {"botToken": "abc", "guilds": [1, 2]})
        assert credential_service.get_credentials(AGENT, "discord") == {"botToken": "abc", "guilds": [1, 2]}

    def test_revoke_is_soft(self, credential_service, session_factory):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)

        assert credential_service.revoke_credentials(AGENT, "twitter") is True
        assert credential_service.get_credentials(AGENT, "twitter") is None
        assert not credential_service.has_credentials(AGENT, "twitter")

        with session_factory() as db:
            record = db.query(ServiceCredential).one()
        assert record.is_active is False
        assert record.status == CredentialStatus.REVOKED

    def test_revoke_without_credentials(self, credential_service):
        assert credential_service.revoke_credentials(AGENT, "twitter") is False

    def test_store_after_revoke_reactivates(self, credential_service, session_factory):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)
        credential_service.revoke_credentials(AGENT, "twitter")
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)

        assert credential_service.get_credentials(AGENT, "twitter") == TWITTER_PAYLOAD
        with session_factory() as db:
            assert db.query(ServiceCredential).count() == 1

    def test_expired_records_read_as_absent(self, credential_service):
        credential_service.store_credentials(
            AGENT, "twitter", TWITTER_PAYLOAD, expires_at=utcnow() - timedelta(minutes=1)
        )
        assert credential_service.get_credentials(AGENT, "twitter") is None

        credential_service.store_credentials(
            AGENT, "twitter", TWITTER_PAYLOAD, expires_at=utcnow() + timedelta(days=1)
        )
        assert credential_service.get_credentials(AGENT, "twitter") == TWITTER_PAYLOAD

    def test_list_active_services(self, credential_service):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)
        credential_service.store_credentials(AGENT, "github", {"token": "gh"})
        credential_service.revoke_credentials(AGENT, "github")
        credential_service.store_credentials(AGENT, "discord", {"token": "d"})

        assert credential_service.list_active_services(AGENT) == ["discord", "twitter"]

    def test_undecryptable_payload_raises(self, credential_service, session_factory):
        credential_service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)

        other_key = CredentialService(session_factory, EncryptionService("o" * 32))
        with pytest.raises(DecryptionError):
            other_key.get_credentials(AGENT, "twitter")

        # Existence checks never decrypt
        assert other_key.has_credentials(AGENT, "twitter")

    def test_non_json_payload_raises(self, session_factory, encryption_service):
        service = CredentialService(session_factory, encryption_service)
        service.store_credentials(AGENT, "discord", {"token": "d"})

        with session_factory() as db:
            record = db.query(ServiceCredential).one()
            record.credentials = encryption_service.encrypt("not json")
            db.commit()

        with pytest.raises(DecryptionError):
            service.get_credentials(AGENT, "discord")

    def test_store_unavailable(self, encryption_service):
        service = CredentialService(broken_session_factory, encryption_service)

        with pytest.raises(StoreUnavailable):
            service.get_credentials(AGENT, "twitter")
        with pytest.raises(StoreUnavailable):
            service.has_credentials(AGENT, "twitter")
        with pytest.raises(StoreUnavailable):
            service.revoke_credentials(AGENT, "twitter")
        with pytest.raises(StoreUnavailable):
            service.validate_connection()

    def test_store_unavailable_on_write(self, encryption_service, session_factory):
        session = broken_session_factory()
        # Dialect lookup happens before the failing execute
        session.get_bind.return_value = session_factory.kw["bind"]
        service = CredentialService(lambda: session, encryption_service)

        with pytest.raises(StoreUnavailable):
            service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)
        session.rollback.assert_called_once()

    def test_validate_connection(self, credential_service):
        credential_service.validate_connection()

    def test_unencrypted_mode_round_trip(self, session_factory):
        service = CredentialService(session_factory, EncryptionService(None))
        service.store_credentials(AGENT, "twitter", TWITTER_PAYLOAD)

        with session_factory() as db:
            record = db.query(ServiceCredential).one()
        assert json.loads(record.credentials)["accessToken"] == "t1"
        assert service.get_credentials(AGENT, "twitter") == TWITTER_PAYLOAD


def test_concurrent_stores_leave_one_record(tmp_path, encryption_service):
    """Many simultaneous writers for one agent/service converge on a single row."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'credentials.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    service = CredentialService(sessionmaker(bind=engine), encryption_service)

    payloads = [dict(TWITTER_PAYLOAD, accessToken=f"token-{i}") for i in range(20)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda payload: service.store_credentials(AGENT, "twitter", payload), payloads))

    with sessionmaker(bind=engine)() as db:
        rows = db.execute(select(ServiceCredential)).scalars().all()

    assert len(rows) == 1
    assert rows[0].is_active is True
    assert service.get_credentials(AGENT, "twitter") in payloads
    engine.dispose()
