"""
User Service

Business operations on users. Every write that sets an email goes through the
signing pipeline, so a stored user always carries a signature over the hash of
its current email.
"""
import logging
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.clock import utc_now
from backend.core.database.models import User
from backend.core.database.repository import UserRepository
from backend.core.export.codec import BytesLike
from backend.core.export.records import RecordList
from backend.core.signing.errors import NotInitializedError
from backend.core.signing.pipeline import RecordSigningPipeline
from backend.core.signing.verify import VerificationResult

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
    """Raised when no user has the requested id."""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class DuplicateEmailError(ValueError):
    """Raised when an email is already taken by another user."""

    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}")
        self.email = email


class UserService:
    """
    User operations bound to one database session.

    Usage:
        service = UserService(db, pipeline)
        user = service.create_user("alice@example.com")
    """

    def __init__(self, db: Session, pipeline: Optional[RecordSigningPipeline] = None):
        """
        Args:
            db: SQLAlchemy session
            pipeline: Signing pipeline; reads work without one, signing and
                      verification raise NotInitializedError
        """
        self.repo = UserRepository(db)
        self._pipeline = pipeline

    @property
    def pipeline(self) -> RecordSigningPipeline:
        if self._pipeline is None:
            raise NotInitializedError("Signing subsystem is not available")
        return self._pipeline

    # ============================================================
    # CRUD
    # ============================================================

    def create_user(self, email: str, role: str = "user", status: str = "active") -> User:
        """
        Sign and store a new user.

        Raises:
            DuplicateEmailError: Email already registered
            InvalidInputError: Empty email
            NotInitializedError: Signing keys unavailable
        """
        if self.repo.get_by_email(email) is not None:
            raise DuplicateEmailError(email)

        fields = self.pipeline.on_create_or_email_change(email)
        try:
            user = self.repo.create(
                email=email,
                role=role,
                status=status,
                email_hash=fields.email_hash,
                digital_signature=fields.signature_encoded,
            )
            self.repo.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same email
            self.repo.rollback()
            raise DuplicateEmailError(email) from e

        logger.info(f"Created user {user.id} (role={role}, status={status})")
        return user

    def get_user(self, user_id: int) -> User:
        user = self.repo.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def list_users(self, **filters) -> Tuple[List[User], int]:
        """See UserRepository.list_users for the accepted filters."""
        return self.repo.list_users(**filters)

    def update_user(
        self,
        user_id: int,
        email: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
    ) -> User:
        """
        Partially update a user. Changing the email re-signs it.

        Raises:
            UserNotFoundError: No such user
            DuplicateEmailError: New email belongs to another user
        """
        user = self.get_user(user_id)
        changes: Dict[str, str] = {}

        if email is not None and email != user.email:
            other = self.repo.get_by_email(email)
            if other is not None and other.id != user.id:
                raise DuplicateEmailError(email)
            fields = self.pipeline.on_create_or_email_change(email)
            changes.update(
                email=email,
                email_hash=fields.email_hash,
                digital_signature=fields.signature_encoded,
            )
        if role is not None:
            changes["role"] = role
        if status is not None:
            changes["status"] = status

        if not changes:
            return user

        try:
            self.repo.update(user, **changes)
            self.repo.commit()
        except IntegrityError as e:
            self.repo.rollback()
            raise DuplicateEmailError(email or user.email) from e

        logger.info(f"Updated user {user_id}: {', '.join(sorted(changes))}")
        return user

    def delete_user(self, user_id: int) -> None:
        user = self.get_user(user_id)
        self.repo.delete(user)
        self.repo.commit()
        logger.info(f"Deleted user {user_id}")

    # ============================================================
    # Aggregates
    # ============================================================

    def stats(self) -> Dict[str, int]:
        return self.repo.stats()

    def signup_chart(self, days: int = 7) -> List[Dict[str, object]]:
        """
        Daily signup counts for the last *days* days, oldest first.

        Every day in the window is present; days without signups count 0.
        Today is the last entry.
        """
        today = utc_now().date()
        first_day = today - timedelta(days=days - 1)
        since = datetime.combine(first_day, time.min)
        counts = self.repo.created_since(since)
        return [
            {"date": day.isoformat(), "count": counts.get(day, 0)}
            for day in (first_day + timedelta(days=offset) for offset in range(days))
        ]

    # ============================================================
    # Integrity
    # ============================================================

    def export_users(self) -> bytes:
        """All users, ordered by id, as a binary UserList payload."""
        records = [user.to_signed_record() for user in self.repo.all_ordered()]
        return self.pipeline.on_export(records)

    def verify_users(self, ids: Optional[Iterable[int]] = None) -> Dict[int, bool]:
        """
        Verify stored users (all of them when ids is None).

        Requested ids with no matching user are reported as False.
        """
        requested = None if ids is None else list(dict.fromkeys(ids))
        users = self.repo.all_ordered(requested)
        results = self.pipeline.on_verify_batch(user.to_signed_record() for user in users)
        if requested is not None:
            for user_id in requested:
                results.setdefault(user_id, False)
        return results

    def verify_user(self, user_id: int) -> VerificationResult:
        return self.pipeline.on_verify_record(self.get_user(user_id).to_signed_record())

    def import_payload(self, data: BytesLike) -> Tuple[RecordList, Dict[int, bool]]:
        """Decode and verify an export payload without storing anything."""
        return self.pipeline.on_import(data)
