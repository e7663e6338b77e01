"""
User management: CRUD, aggregates and integrity checks over signed users.
"""
from backend.core.users.service import DuplicateEmailError, UserNotFoundError, UserService

__all__ = ['UserService', 'UserNotFoundError', 'DuplicateEmailError']
