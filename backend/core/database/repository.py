"""
Database Repository - High-level database operations for signed users.

Provides a simple interface to store, query and aggregate users. Signing happens
above this layer; the repository only persists the fields it is given.
"""
from typing import Optional, List, Dict, Any, Iterable, Tuple
from datetime import date, datetime
from sqlalchemy.orm import Session
from sqlalchemy import select, func, asc, desc
import logging

from .models import User

logger = logging.getLogger(__name__)


SORTABLE_COLUMNS = {
    "id": User.id,
    "email": User.email,
    "role": User.role,
    "status": User.status,
    "created_at": User.created_at,
    "updated_at": User.updated_at,
}


class UserRepository:
    """
    Repository pattern for user database operations.
    """

    def __init__(self, db: Session):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    # ============================================================
    # Writes
    # ============================================================

    def create(self, email: str, role: str, status: str,
               email_hash: str, digital_signature: str) -> User:
        """Add a user and flush so its id is assigned (caller commits)."""
        user = User(
            email=email,
            role=role,
            status=status,
            email_hash=email_hash,
            digital_signature=digital_signature,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def update(self, user: User, **fields: Any) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        self.db.flush()
        return user

    def delete(self, user: User) -> None:
        self.db.delete(user)
        self.db.flush()

    def commit(self):
        """Commit transaction with error handling"""
        try:
            self.db.commit()
        except Exception as e:
            logger.error(f"Failed to commit transaction: {e}", exc_info=True)
            self.db.rollback()
            raise

    def rollback(self):
        """Rollback transaction"""
        self.db.rollback()

    # ============================================================
    # Reads
    # ============================================================

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        role: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[User], int]:
        """
        Filtered, sorted, paginated user listing.

        Args:
            page: 1-based page number
            limit: Page size
            role: Only users with this role
            status: Only users with this status
            sort_by: Column name from SORTABLE_COLUMNS
            sort_order: "asc" or "desc"

        Returns:
            (users on the page, total matching users)
        """
        query = select(User)
        count_query = select(func.count(User.id))
        if role:
            query = query.where(User.role == role)
            count_query = count_query.where(User.role == role)
        if status:
            query = query.where(User.status == status)
            count_query = count_query.where(User.status == status)

        column = SORTABLE_COLUMNS.get(sort_by, User.created_at)
        direction = asc if sort_order == "asc" else desc
        # id as tie-breaker keeps pages stable
        query = query.order_by(direction(column), direction(User.id))
        query = query.offset((page - 1) * limit).limit(limit)

        total = self.db.execute(count_query).scalar_one()
        users = list(self.db.execute(query).scalars())
        return users, total

    def all_ordered(self, ids: Optional[Iterable[int]] = None) -> List[User]:
        """All users (or those with the given ids) ordered by id."""
        query = select(User).order_by(User.id)
        if ids is not None:
            query = query.where(User.id.in_(list(ids)))
        return list(self.db.execute(query).scalars())

    def stats(self) -> Dict[str, int]:
        """Counts by status and role."""
        def count(*conditions) -> int:
            return self.db.execute(select(func.count(User.id)).where(*conditions)).scalar_one()

        return {
            "total": count(),
            "active": count(User.status == "active"),
            "inactive": count(User.status == "inactive"),
            "admins": count(User.role == "admin"),
            "regular": count(User.role == "user"),
        }

    def created_since(self, since: datetime) -> Dict[date, int]:
        """
        Number of users created per UTC day from *since* onwards.

        Args:
            since: Naive UTC lower bound (inclusive)

        Returns:
            Mapping of day to count; days without signups are absent
        """
        rows = self.db.execute(
            select(User.created_at).where(User.created_at >= since)
        ).scalars()

        counts: Dict[date, int] = {}
        for created_at in rows:
            day = created_at.date()
            counts[day] = counts.get(day, 0) + 1
        return counts
