"""Connection service - persistence of social connections and user lookups"""
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from socialink.core.providers import SocialProvider
from socialink.models.social_connection import SocialConnection
from socialink.models.user import User
from socialink.schemas.connections import (
    ConnectionMetadata, ConnectionProfile, ConnectionSummary, dump_metadata, parse_metadata
)

logger = logging.getLogger(__name__)


class UserDirectory:
    """User lookups and profile updates for the OAuth flows"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id, User.is_deleted == False).first()  # noqa: E712

    def find_email_owner(self, email: str) -> Optional[User]:
        """Any user holding the email, soft-deleted ones included; users.email is unique across all rows"""
        return self.db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    def update_profile(self, user: User) -> None:
        """Stage profile changes; they are committed together with the connection"""
        user.updated_at = datetime.now(timezone.utc)
        self.db.add(user)


class ConnectionStore:
    """SQLAlchemy-backed storage for SocialConnection records"""

    def __init__(self, db: Session):
        self.db = db

    def find_active(self, user_id: UUID, provider: SocialProvider) -> Optional[SocialConnection]:
        return self.db.query(SocialConnection).filter(
            SocialConnection.user_id == user_id,
            SocialConnection.provider == SocialProvider(provider).value,
            SocialConnection.is_deleted == False,  # noqa: E712
        ).order_by(SocialConnection.updated_at.desc()).first()

    def find_by_id(self, connection_id: UUID, user_id: UUID, provider: SocialProvider) -> Optional[SocialConnection]:
        return self.db.query(SocialConnection).filter(
            SocialConnection.id == connection_id,
            SocialConnection.user_id == user_id,
            SocialConnection.provider == SocialProvider(provider).value,
            SocialConnection.is_deleted == False,  # noqa: E712
        ).first()

    def list_for_user(self, user_id: UUID) -> List[SocialConnection]:
        return self.db.query(SocialConnection).filter(
            SocialConnection.user_id == user_id,
            SocialConnection.is_deleted == False,  # noqa: E712
        ).order_by(SocialConnection.created_at).all()

    def insert(self, record: SocialConnection) -> None:
        self.db.add(record)

    def replace(self, record: SocialConnection) -> None:
        self.db.add(record)

    def commit(self, record: SocialConnection) -> SocialConnection:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(record)
        return record


# Striped locks: one writer at a time per (user, provider) within this process
_UPSERT_LOCK_STRIPES = 64
_upsert_locks = [threading.Lock() for _ in range(_UPSERT_LOCK_STRIPES)]


def _upsert_lock(user_id: UUID, provider: SocialProvider) -> threading.Lock:
    return _upsert_locks[hash((str(user_id), SocialProvider(provider).value)) % _UPSERT_LOCK_STRIPES]


class ConnectionUpserter:
    """Keeps at most one live connection per (user, provider)"""

    def __init__(self, store: ConnectionStore):
        self.store = store

    def save(self, user_id: UUID, provider: SocialProvider, metadata: ConnectionMetadata) -> SocialConnection:
        """Replace the live connection's metadata in place, or create the connection"""
        provider = SocialProvider(provider)
        payload = dump_metadata(metadata)

        with _upsert_lock(user_id, provider):
            now = datetime.now(timezone.utc)
            existing = self.store.find_active(user_id, provider)
            if existing is not None:
                existing.connection_metadata = payload
                existing.updated_at = now
                self.store.replace(existing)
                record = existing
                logger.info(f"Updated {provider.value} connection {record.id} for user {user_id}")
            else:
                record = SocialConnection(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    provider=provider.value,
                    connection_metadata=payload,
                    created_at=now,
                    updated_at=now,
                )
                self.store.insert(record)
                logger.info(f"Created {provider.value} connection {record.id} for user {user_id}")
            return self.store.commit(record)


def to_summary(connection: SocialConnection) -> ConnectionSummary:
    """Public summary of a connection, without any token"""
    metadata = parse_metadata(connection.connection_metadata)
    return ConnectionSummary(
        id=connection.id,
        provider=connection.provider,
        profile=ConnectionProfile(**metadata.profile()),
        expires_at=getattr(metadata, "expires_at", None),
        created_at=connection.created_at,
        updated_at=connection.updated_at,
    )
