#!/usr/bin/env python3
"""
Seed Demo Users

Creates a handful of users through the signing pipeline, so every seeded row
carries a real signature. Existing emails are skipped.

Usage:
    python3 scripts/seed_users.py
    python3 scripts/seed_users.py --count 50
"""
import sys
import os
import argparse
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from backend.core.config import get_settings
from backend.core.database import connection
from backend.core.signing.pipeline import build_pipeline
from backend.core.users import DuplicateEmailError, UserService

logger = logging.getLogger("seed_users")

BASE_USERS = [
    ("admin@example.com", "admin", "active"),
    ("alice@example.com", "user", "active"),
    ("bob@example.com", "user", "active"),
    ("carol@example.com", "user", "inactive"),
    ("dave@example.com", "admin", "inactive"),
]


def demo_users(count: int):
    """BASE_USERS followed by generated users, *count* in total."""
    for index in range(count):
        if index < len(BASE_USERS):
            yield BASE_USERS[index]
        else:
            role = "admin" if index % 7 == 0 else "user"
            status = "inactive" if index % 4 == 0 else "active"
            yield (f"user{index}@example.com", role, status)


def main():
    parser = argparse.ArgumentParser(description="Create signed demo users")
    parser.add_argument("--count", type=int, default=len(BASE_USERS), help="Number of users to create")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )

    connection.init_db()
    connection.create_tables()
    pipeline = build_pipeline(settings)

    db = connection.SessionLocal()
    created = skipped = 0
    try:
        service = UserService(db, pipeline)
        for email, role, status in demo_users(args.count):
            try:
                service.create_user(email, role=role, status=status)
                created += 1
            except DuplicateEmailError:
                skipped += 1
    finally:
        db.close()

    logger.info(f"Seeding complete: {created} created, {skipped} already present")
    return 0


if __name__ == "__main__":
    sys.exit(main())
