"""
FastAPI dependencies shared by the routers.

The signing pipeline lives on app.state (set at startup, or by tests). It is None
when the key store failed to initialize; endpoints that need it answer 503.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from backend.core.database import get_db
from backend.core.signing.pipeline import RecordSigningPipeline
from backend.core.users import UserService


def get_pipeline(request: Request) -> Optional[RecordSigningPipeline]:
    return getattr(request.app.state, "pipeline", None)


def require_pipeline(
    pipeline: Optional[RecordSigningPipeline] = Depends(get_pipeline),
) -> RecordSigningPipeline:
    """Signing pipeline, or 503 if the signing subsystem is unavailable."""
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Signing subsystem is not available")
    return pipeline


def get_user_service(
    db: Session = Depends(get_db),
    pipeline: Optional[RecordSigningPipeline] = Depends(get_pipeline),
) -> UserService:
    return UserService(db, pipeline)
