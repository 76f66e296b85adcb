from sqlalchemy import Column, String, DateTime, Boolean, Text, Enum as SAEnum, Index, UniqueConstraint
from datetime import datetime, timezone
from enum import Enum
import uuid

from database import Base


def utcnow():
    return datetime.now(timezone.utc)


class ServiceName(str, Enum):
    """Services an agent can hold credentials for."""
    TWITTER = "twitter"
    DISCORD = "discord"
    TELEGRAM = "telegram"
    GITHUB = "github"
    GOOGLE = "google"
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    OTHER = "other"


class CredentialStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    REVOKED = "revoked"
    PENDING = "pending"


class ServiceCredential(Base):
    """
    Encrypted credentials for one (agent, service) pair.

    ``credentials`` holds the serialized payload after encryption, so the
    database never sees plaintext tokens while encryption is enabled.
    """
    __tablename__ = "service_credentials"
    __table_args__ = (
        UniqueConstraint("agent_id", "service_name", name="service_credentials_agent_service_unique"),
        Index("service_credentials_agent_id_idx", "agent_id"),
        Index("service_credentials_service_name_idx", "service_name"),
        Index("service_credentials_status_idx", "status"),
        Index("service_credentials_is_active_idx", "is_active"),
        Index("service_credentials_created_at_idx", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String, nullable=False)
    service_name = Column(
        SAEnum(ServiceName, name="service_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    status = Column(
        SAEnum(CredentialStatus, name="credential_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CredentialStatus.PENDING,
    )
    credentials = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
