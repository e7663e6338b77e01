"""
API Routes
"""
from backend.api.routes import crypto, users

__all__ = ["crypto", "users"]
