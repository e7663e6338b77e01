"""Database module: users table, sessions and repository"""
from .models import Base, User
from .connection import get_db, init_db, create_tables
from .repository import UserRepository

__all__ = [
    'Base',
    'User',
    'UserRepository',
    'get_db',
    'init_db',
    'create_tables',
]
