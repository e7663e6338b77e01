"""
User API endpoints

CRUD over signed users plus the integrity endpoints: binary export, import with
verification, and batch or single-record signature checks.
"""
import base64
import binascii
import json
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import Response

from backend.api.dependencies import get_user_service
from backend.api.schemas import (
    ChartPoint,
    ExportResponse,
    ImportedUser,
    ImportResponse,
    PaginationInfo,
    Role,
    SortField,
    SortOrder,
    Status,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdate,
    VerificationResponse,
    VerifyBatchResponse,
    VerifyRequest,
)
from backend.core.users import DuplicateEmailError, UserNotFoundError, UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

PROTOBUF_MEDIA_TYPE = "application/x-protobuf"


def _user_response(user) -> UserResponse:
    return UserResponse.model_validate(user.to_dict())


# ============================================================
# Collection endpoints
# ============================================================

@router.post("", response_model=UserResponse, status_code=201)
async def create_user(payload: UserCreate, service: UserService = Depends(get_user_service)):
    """
    Create a user. The email is hashed and signed before it is stored.

    **Errors:**
    - 409 if the email is already registered
    - 503 if the signing keys are unavailable
    """
    try:
        user = service.create_user(payload.email, role=payload.role, status=payload.status)
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _user_response(user)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Users per page"),
    role: Optional[Role] = Query(None, description="Filter by role"),
    status: Optional[Status] = Query(None, description="Filter by status"),
    sort_by: SortField = Query("created_at", description="Sort column"),
    sort_order: SortOrder = Query("desc", description="Sort direction"),
    service: UserService = Depends(get_user_service),
):
    """
    List users with pagination, filters and sorting.
    """
    users, total = service.list_users(
        page=page, limit=limit, role=role, status=status,
        sort_by=sort_by, sort_order=sort_order,
    )
    return UserListResponse(
        users=[_user_response(user) for user in users],
        pagination=PaginationInfo(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/stats", response_model=UserStatsResponse)
async def get_user_stats(service: UserService = Depends(get_user_service)):
    """Counts by status and role."""
    return UserStatsResponse(**service.stats())


@router.get("/chart", response_model=List[ChartPoint])
async def get_user_chart(
    days: int = Query(7, ge=1, le=365, description="Number of days, ending today"),
    service: UserService = Depends(get_user_service),
):
    """
    Daily signups for the last N days, oldest first, zero-filled.
    """
    return [ChartPoint(**point) for point in service.signup_chart(days)]


@router.get("/export")
async def export_users(
    export_format: str = Query(
        "json", alias="format", pattern="^(json|binary)$", description="json (base64) or binary"
    ),
    service: UserService = Depends(get_user_service),
):
    """
    Export all users with their signatures as a protobuf UserList.

    **Formats:**
    - json: `{success, data: base64, message}`
    - binary: raw `application/x-protobuf` bytes
    """
    payload = service.export_users()
    if export_format == "binary":
        return Response(
            content=payload,
            media_type=PROTOBUF_MEDIA_TYPE,
            headers={"Content-Disposition": 'attachment; filename="users.pb"'},
        )
    return ExportResponse(
        data=base64.b64encode(payload).decode("ascii"),
        message=f"Exported users ({len(payload)} bytes)",
    )


@router.post("/import", response_model=ImportResponse, response_model_by_alias=True)
async def import_users(request: Request, service: UserService = Depends(get_user_service)):
    """
    Decode an export payload and verify every record in it. Nothing is stored.

    **Body:** raw protobuf bytes, or JSON `{"data": "<base64>"}`
    """
    body = await request.body()
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            encoded = json.loads(body).get("data")
            if not isinstance(encoded, str):
                raise ValueError("'data' must be a base64 string")
            body = base64.b64decode(encoded, validate=True)
        except (ValueError, AttributeError, binascii.Error) as e:
            raise HTTPException(status_code=400, detail=f"Invalid import body: {e}")

    record_list, results = service.import_payload(body)
    users = [
        ImportedUser(
            id=record.id,
            email=record.email,
            role=record.role,
            status=record.status,
            email_hash=record.email_hash,
            signature=record.signature,
            created_at=record.created_at,
            updated_at=record.updated_at,
            verified=results.get(record.id, False),
        )
        for record in record_list.records
    ]
    verified = sum(1 for user in users if user.verified)
    return ImportResponse(
        users=users,
        total_count=record_list.total_count,
        exported_at=record_list.exported_at,
        verified=verified,
        failed=len(users) - verified,
    )


@router.post("/verify", response_model=VerifyBatchResponse)
async def verify_users(
    payload: Optional[VerifyRequest] = Body(None),
    service: UserService = Depends(get_user_service),
):
    """
    Verify stored signatures in batch.

    Ids that do not exist are reported as failed.
    """
    ids = payload.ids if payload is not None else None
    results = service.verify_users(ids)
    verified = sum(1 for valid in results.values() if valid)
    return VerifyBatchResponse(results=results, verified=verified, failed=len(results) - verified)


# ============================================================
# Single-user endpoints
# ============================================================

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    try:
        return _user_response(service.get_user(user_id))
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")


@router.get("/{user_id}/verify", response_model=VerificationResponse, response_model_by_alias=True)
async def verify_user(user_id: int, service: UserService = Depends(get_user_service)):
    """
    Verify one user's signature and explain the outcome.
    """
    try:
        result = service.verify_user(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    return VerificationResponse(id=user_id, **result.to_dict())


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    updates: UserUpdate,
    service: UserService = Depends(get_user_service),
):
    """
    Update email, role or status. An email change is re-signed.
    """
    try:
        user = service.update_user(user_id, **updates.model_dump(exclude_unset=True))
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _user_response(user)


@router.delete("/{user_id}")
async def delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    try:
        service.delete_user(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    return {"status": "deleted", "user_id": user_id}
