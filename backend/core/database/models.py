"""
SQLAlchemy Database Models

Stores:
- Users (email, role, status)
- Integrity provenance per user: SHA-384 email hash and the encoded signature bundle

The signature columns are written only by the signing pipeline, on create and on
email change. Role and status updates leave them untouched.
"""
from sqlalchemy import Column, String, Integer, DateTime, Text, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime

from backend.core.clock import to_iso, utc_now
from backend.core.export.records import SignedRecord

Base = declarative_base()

ROLES = ("admin", "user")
STATUSES = ("active", "inactive")


def _utc_now_naive() -> datetime:
    # Stored naive; every timestamp in this table is UTC
    return utc_now().replace(tzinfo=None)


class User(Base):
    """
    A user account with its email signature.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default="user")
    status = Column(String(20), nullable=False, default="active")

    # Integrity provenance
    email_hash = Column(String(96))  # hex SHA-384 of email
    digital_signature = Column(Text)  # base64(json(signature bundle))

    created_at = Column(DateTime, nullable=False, default=_utc_now_naive)
    updated_at = Column(DateTime, nullable=False, default=_utc_now_naive, onupdate=_utc_now_naive)

    __table_args__ = (
        Index('idx_users_role', 'role'),
        Index('idx_users_status', 'status'),
        Index('idx_users_created_at', 'created_at'),
    )

    def to_signed_record(self) -> SignedRecord:
        """Export view of this row."""
        return SignedRecord(
            id=self.id or 0,
            email=self.email or "",
            role=self.role or "",
            status=self.status or "",
            email_hash=self.email_hash or "",
            signature=self.digital_signature or "",
            created_at=to_iso(self.created_at),
            updated_at=to_iso(self.updated_at),
        )

    def to_dict(self) -> dict:
        """API representation."""
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "emailHash": self.email_hash,
            "signature": self.digital_signature,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role}, status={self.status})>"
