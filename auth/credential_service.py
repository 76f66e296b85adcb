"""
Credential Service
==================

Durable storage of per-agent, per-service credentials.

Payloads are validated against the service's credential model, serialized to
JSON and encrypted before they reach the database. Each (agent, service) pair
owns exactly one row: writes are a single ``INSERT ... ON CONFLICT DO UPDATE``
so concurrent writers converge on one record (last writer wins) instead of
racing a read-then-write.

Revocation is a soft delete (``is_active = False``, ``status = revoked``) and
every read filters on ``is_active``, so a revoked pair reads exactly like one
that never connected.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError
from sqlalchemy import or_, select, text, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from auth.encryption_service import EncryptionService
from errors import DecryptionError, StoreUnavailable, UnsupportedService
from models import CredentialStatus, ServiceCredential, ServiceName, utcnow
from plugins import get_credential_model

logger = logging.getLogger(__name__)

# Failures that mean the database itself is unreachable or broken
INFRASTRUCTURE_ERRORS = (OperationalError, InterfaceError)


def parse_service_name(service: Union[str, ServiceName]) -> ServiceName:
    """
    Convert a service name to the ServiceName enum.

    Raises:
        UnsupportedService: If the name is not one of the known services
    """
    try:
        return ServiceName(service)
    except ValueError:
        raise UnsupportedService(f"Unsupported service: {service}")


class CredentialService:
    """
    Encrypted credential store backed by SQLAlchemy.

    Args:
        session_factory: Callable returning a new SQLAlchemy Session
        encryption_service (EncryptionService): Cipher for stored payloads
        clock: Source of the current UTC time
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        encryption_service: EncryptionService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.encryption_service = encryption_service
        self.clock = clock or utcnow

    def serialize_credentials(self, service: ServiceName, credentials: Union[Mapping[str, Any], BaseModel]) -> str:
        """
        Validate a payload against the service's credential model and dump it to JSON.

        Raises:
            ValueError: If the payload does not match the service's credential shape
        """
        model = get_credential_model(service.value)
        if isinstance(credentials, BaseModel):
            credentials = credentials.model_dump(by_alias=True, exclude_none=True)

        if model is None:
            if not isinstance(credentials, Mapping):
                raise ValueError(f"Credentials for {service.value} must be a JSON object")
            return json.dumps(dict(credentials))

        try:
            validated = model.model_validate(dict(credentials))
        except ValidationError as e:
            raise ValueError(f"Invalid {service.value} credentials: {e.error_count()} validation error(s)") from e
        return validated.model_dump_json(by_alias=True, exclude_none=True)

    def store_credentials(
        self,
        agent_id: str,
        service: Union[str, ServiceName],
        credentials: Union[Mapping[str, Any], BaseModel],
        expires_at: Optional[datetime] = None,
    ) -> None:
        """
        Encrypt and upsert credentials for an agent/service pair.

        Re-authenticating replaces the stored payload and reactivates a
        revoked record.

        Raises:
            UnsupportedService: If the service name is unknown
            ValueError: If the payload fails validation
            StoreUnavailable: If the database cannot be reached
        """
        service_name = parse_service_name(service)
        logger.info(f"Storing credentials for agent {agent_id} and service {service_name.value}")

        encrypted = self.encryption_service.encrypt(self.serialize_credentials(service_name, credentials))
        now = self.clock()

        with self.session_factory() as db:
            try:
                insert = self._dialect_insert(db)
                stmt = insert(ServiceCredential).values(
                    id=str(uuid.uuid4()),
                    agent_id=agent_id,
                    service_name=service_name,
                    status=CredentialStatus.ACTIVE,
                    credentials=encrypted,
                    is_active=True,
                    expires_at=expires_at,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ServiceCredential.agent_id, ServiceCredential.service_name],
                    set_={
                        "credentials": stmt.excluded.credentials,
                        "status": stmt.excluded.status,
                        "is_active": stmt.excluded.is_active,
                        "expires_at": stmt.excluded.expires_at,
                        "updated_at": stmt.excluded.updated_at,
                    },
                )
                db.execute(stmt)
                db.commit()
            except INFRASTRUCTURE_ERRORS as e:
                db.rollback()
                logger.error(f"Failed to store credentials for {service_name.value}: {str(e)}")
                raise StoreUnavailable(f"Credential store unavailable: {type(e).__name__}") from e

        logger.info(f"Credentials stored successfully for {service_name.value}")

    def get_credentials(self, agent_id: str, service: Union[str, ServiceName]) -> Optional[Dict[str, Any]]:
        """
        Return the decrypted payload for an agent/service pair.

        Returns:
            Optional[Dict[str, Any]]: The payload, or None when there is no active record

        Raises:
            DecryptionError: If the stored payload cannot be decrypted or parsed
            StoreUnavailable: If the database cannot be reached
        """
        service_name = parse_service_name(service)
        record = self._get_active_record(agent_id, service_name)
        if record is None:
            logger.info(f"No credentials found for agent {agent_id} and service {service_name.value}")
            return None

        try:
            decrypted = self.encryption_service.decrypt(record.credentials)
        except DecryptionError:
            logger.error(f"Failed to decrypt credentials for {service_name.value} (agent {agent_id})")
            raise

        try:
            payload = json.loads(decrypted)
        except json.JSONDecodeError as e:
            logger.error(f"Stored credentials for {service_name.value} are not valid JSON")
            raise DecryptionError(
                f"Failed to decrypt credentials for {service_name.value}: invalid encryption or corrupted data"
            ) from e

        if not isinstance(payload, dict):
            raise DecryptionError(f"Stored credentials for {service_name.value} are not a JSON object")
        return payload

    def has_credentials(self, agent_id: str, service: Union[str, ServiceName]) -> bool:
        """
        Check whether an active record exists, without decrypting it.

        Raises:
            StoreUnavailable: If the database cannot be reached
        """
        return self._get_active_record(agent_id, parse_service_name(service)) is not None

    def revoke_credentials(self, agent_id: str, service: Union[str, ServiceName]) -> bool:
        """
        Deactivate the record for an agent/service pair.

        Returns:
            bool: True if an active record was revoked, False if there was none

        Raises:
            StoreUnavailable: If the database cannot be reached
        """
        service_name = parse_service_name(service)

        with self.session_factory() as db:
            try:
                result = db.execute(
                    update(ServiceCredential)
                    .where(
                        ServiceCredential.agent_id == agent_id,
                        ServiceCredential.service_name == service_name,
                        ServiceCredential.is_active == True,  # noqa: E712
                    )
                    .values(is_active=False, status=CredentialStatus.REVOKED, updated_at=self.clock())
                )
                revoked = result.rowcount > 0
                db.commit()
            except INFRASTRUCTURE_ERRORS as e:
                db.rollback()
                logger.error(f"Failed to revoke credentials for {service_name.value}: {str(e)}")
                raise StoreUnavailable(f"Credential store unavailable: {type(e).__name__}") from e

        if revoked:
            logger.info(f"Credentials revoked for agent {agent_id} and service {service_name.value}")
        else:
            logger.info(f"No active credentials to revoke for agent {agent_id} and service {service_name.value}")
        return revoked

    def list_active_services(self, agent_id: str) -> List[str]:
        """
        Return the names of all services the agent holds active credentials for.

        Raises:
            StoreUnavailable: If the database cannot be reached
        """
        with self.session_factory() as db:
            try:
                rows = db.execute(
                    select(ServiceCredential.service_name)
                    .where(ServiceCredential.agent_id == agent_id, *self._active_filters())
                    .order_by(ServiceCredential.service_name)
                ).scalars().all()
            except INFRASTRUCTURE_ERRORS as e:
                raise StoreUnavailable(f"Credential store unavailable: {type(e).__name__}") from e
        return [row.value for row in rows]

    def validate_connection(self) -> None:
        """
        Run a trivial query to check the database is reachable.

        Raises:
            StoreUnavailable: If it is not
        """
        with self.session_factory() as db:
            try:
                db.execute(text("SELECT 1"))
            except INFRASTRUCTURE_ERRORS as e:
                raise StoreUnavailable(f"Database connection failed: {type(e).__name__}") from e

    def _active_filters(self):
        return (
            ServiceCredential.is_active == True,  # noqa: E712
            or_(ServiceCredential.expires_at.is_(None), ServiceCredential.expires_at > self.clock()),
        )

    def _get_active_record(self, agent_id: str, service_name: ServiceName) -> Optional[ServiceCredential]:
        with self.session_factory() as db:
            try:
                return db.query(ServiceCredential).filter(
                    ServiceCredential.agent_id == agent_id,
                    ServiceCredential.service_name == service_name,
                    *self._active_filters(),
                ).first()
            except INFRASTRUCTURE_ERRORS as e:
                logger.error(f"Failed to read credentials for {service_name.value}: {str(e)}")
                raise StoreUnavailable(f"Credential store unavailable: {type(e).__name__}") from e

    @staticmethod
    def _dialect_insert(db: Session):
        dialect = db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"Atomic upsert is not supported for the {dialect} dialect")
        return insert
