"""
API request and response models for the Gatekeeper RPC endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Empty strings and zero IDs are accepted here on purpose: the routes reject
them with 400 invalid_argument, which is the documented contract, rather than
Pydantic's 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import UserInfo

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    name: str = Field(default="", max_length=255)
    email: str = Field(max_length=255)
    # bcrypt ignores everything past 72 bytes
    password: str = Field(max_length=72)
    role: str = Field(default="user", max_length=64)
    is_admin: bool = False


class LoginRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=72)
    app_id: int = Field(ge=0)


class IsAdminRequest(BaseModel):
    user_id: int = Field(ge=0)


class ValidateTokenRequest(BaseModel):
    token: str


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    user_id: int


class LoginResponse(BaseModel):
    token: str


class IsAdminResponse(BaseModel):
    is_admin: bool


class ValidateTokenResponse(BaseModel):
    """is_valid=False is a normal answer, not an error. user_id is 0 in that case."""

    user_id: int = 0
    is_valid: bool


class UserResponse(BaseModel):
    """Public profile. Role and credential material are not exposed."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str

    @classmethod
    def from_info(cls, info: UserInfo) -> "UserResponse":
        return cls(id=info.id, name=info.name, email=info.email)


class ErrorDetail(BaseModel):
    """Inner error object. code is machine-readable; message is for humans."""

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope for every non-2xx response."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
