"""
Tests for connection status resolution
"""

from unittest.mock import MagicMock

import pytest

from auth.status_service import ConnectionStatusResolver
from errors import DecryptionError, StoreUnavailable

pytestmark = [pytest.mark.unit]

AGENT = "A1"


class TestConnectionStatusResolver:

    def test_connected_with_identity(self, credential_service, status_resolver, clock):
        credential_service.store_credentials(AGENT, "twitter", {
            "accessToken": "t1",
            "accessTokenSecret": "s1",
            "username": "alice",
            "userId": "42",
        })

        status = status_resolver.get_connection_status(AGENT, "twitter")

        assert status.is_connected is True
        assert status.username == "alice"
        assert status.user_id == "42"
        assert status.to_dict() == {
            "serviceName": "twitter",
            "isConnected": True,
            "username": "alice",
            "userId": "42",
            "lastChecked": clock().isoformat(),
        }

    def test_not_connected(self, status_resolver):
        status = status_resolver.get_connection_status(AGENT, "twitter")

        assert status.is_connected is False
        assert "username" not in status.to_dict()
        assert "error" not in status.to_dict()

    def test_disconnected_after_revoke(self, credential_service, status_resolver):
        credential_service.store_credentials(AGENT, "twitter", {
            "accessToken": "t1",
            "accessTokenSecret": "s1",
            "username": "alice",
        })
        credential_service.revoke_credentials(AGENT, "twitter")

        assert status_resolver.get_connection_status(AGENT, "twitter").is_connected is False

    def test_store_unavailable_reads_as_disconnected(self, clock):
        store = MagicMock()
        store.get_credentials.side_effect = StoreUnavailable("Credential store unavailable: OperationalError")
        resolver = ConnectionStatusResolver(store, services=["twitter"], clock=clock)

        status = resolver.get_connection_status(AGENT, "twitter")

        assert status.is_connected is False
        assert status.error is None

    def test_decryption_error_is_flagged(self, clock):
        store = MagicMock()
        store.get_credentials.side_effect = DecryptionError("Decryption failed")
        resolver = ConnectionStatusResolver(store, services=["twitter"], clock=clock)

        status = resolver.get_connection_status(AGENT, "twitter")

        assert status.is_connected is False
        assert status.to_dict()["error"] == "Stored credentials could not be decrypted"

    def test_unexpected_error_never_reports_connected(self, clock):
        store = MagicMock()
        store.get_credentials.side_effect = RuntimeError("boom")
        resolver = ConnectionStatusResolver(store, services=["twitter"], clock=clock)

        assert resolver.get_connection_status(AGENT, "twitter").is_connected is False

    def test_unsupported_service(self, status_resolver):
        status = status_resolver.get_connection_status(AGENT, "myspace")
        assert status.is_connected is False
        assert status.error == "Unsupported service: myspace"

    def test_all_statuses_are_independent(self, clock):
        store = MagicMock()

        def get_credentials(agent_id, service):
            if service == "twitter":
                raise StoreUnavailable("Credential store unavailable: OperationalError")
            return {"username": "octocat"}

        store.get_credentials.side_effect = get_credentials
        resolver = ConnectionStatusResolver(store, services=["twitter", "github"], clock=clock)

        statuses = resolver.get_all_connection_statuses(AGENT)

        assert [s.service_name for s in statuses] == ["twitter", "github"]
        assert statuses[0].is_connected is False
        assert statuses[1].is_connected is True
        assert statuses[1].username == "octocat"
