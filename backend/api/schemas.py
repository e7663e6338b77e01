"""
Pydantic schemas for FastAPI endpoints
"""
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


Role = Literal["admin", "user"]
Status = Literal["active", "inactive"]
SortField = Literal["id", "email", "role", "status", "created_at", "updated_at"]
SortOrder = Literal["asc", "desc"]


# ============================================================
# Users
# ============================================================

class UserCreate(BaseModel):
    """Create user request"""
    email: EmailStr
    role: Role = "user"
    status: Status = "active"


class UserUpdate(BaseModel):
    """Partial update request (at least one field)"""
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    status: Optional[Status] = None

    @model_validator(mode="after")
    def _require_one_field(self):
        if self.email is None and self.role is None and self.status is None:
            raise ValueError("At least one of email, role or status is required")
        return self


class UserResponse(BaseModel):
    """User with its integrity provenance"""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    email: str
    role: str
    status: str
    email_hash: Optional[str] = Field(None, alias="emailHash")
    signature: Optional[str] = None
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class UserListResponse(BaseModel):
    """Paginated user list"""
    users: List[UserResponse]
    pagination: PaginationInfo


class UserStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    admins: int
    regular: int


class ChartPoint(BaseModel):
    date: str
    count: int


# ============================================================
# Export / import / verification
# ============================================================

class ExportResponse(BaseModel):
    """Base64 protobuf UserList"""
    success: bool = True
    data: str
    message: str


class ImportRequest(BaseModel):
    """JSON form of an import: base64 protobuf UserList"""
    data: str


class ImportedUser(BaseModel):
    id: int
    email: str
    role: str
    status: str
    email_hash: str = Field("", alias="emailHash")
    signature: str = ""
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")
    verified: bool

    model_config = ConfigDict(populate_by_name=True)


class ImportResponse(BaseModel):
    success: bool = True
    users: List[ImportedUser]
    total_count: int = Field(alias="totalCount")
    exported_at: str = Field(alias="exportedAt")
    verified: int
    failed: int

    model_config = ConfigDict(populate_by_name=True)


class VerifyRequest(BaseModel):
    """Batch verification request; all users when ids is omitted"""
    ids: Optional[List[int]] = None


class VerifyBatchResponse(BaseModel):
    results: Dict[int, bool]
    verified: int
    failed: int


class VerificationResponse(BaseModel):
    """Single-record verification outcome"""
    id: int
    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    email_hash: Optional[str] = Field(None, alias="emailHash")

    model_config = ConfigDict(populate_by_name=True)


# ============================================================
# Crypto
# ============================================================

class PublicKeyResponse(BaseModel):
    """Base64 protobuf PublicKeyInfo"""
    success: bool = True
    data: str


class PublicKeyInfoResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]
    message: Optional[str] = None
