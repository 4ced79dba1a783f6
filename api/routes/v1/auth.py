"""
api/routes/v1/auth.py -- The credential authority's RPC endpoints.

Routes:
  POST /api/v1/auth/register        -- create a user; 201 {user_id}
  POST /api/v1/auth/login           -- password login for an app; {token}
  POST /api/v1/auth/is-admin        -- admin flag for a user id; {is_admin}
  POST /api/v1/auth/validate-token  -- {user_id, is_valid}
  GET  /api/v1/auth/users/{user_id} -- public profile {id, name, email}

Argument guards run here, before the service is called:
  register        -- email and password required
  login           -- email, password and a non-zero app_id required
  is-admin        -- non-zero user_id required
  validate-token  -- non-empty token required
A failed guard is 400 invalid_argument.

Service failures (AuthError) are not caught here; the exception handler in
api/main.py maps each ErrorKind to a status. The one exception is
validate-token, where INVALID_TOKEN is an answer (is_valid=false), not an
error.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import (
    IsAdminRequest,
    IsAdminResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
    ValidateTokenRequest,
    ValidateTokenResponse,
)
from auth.errors import AuthError, ErrorKind
from auth.service import AuthService

router = APIRouter()


def _require(value, message: str) -> None:
    if not value:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_argument", "message": message},
        )


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
async def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Register a new user. 409 conflict if the email is already taken."""
    _require(body.email, "email is required")
    _require(body.password, "password is required")

    user_id = await _service(request).register(
        body.name,
        body.email,
        body.password,
        body.role,
        body.is_admin,
    )
    return RegisterResponse(user_id=user_id)


@router.post("/auth/login", response_model=LoginResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a token for app_id.

    Wrong password and unknown email return the same invalid_credentials
    error so the response does not reveal which emails are registered.
    """
    _require(body.email, "email is required")
    _require(body.password, "password is required")
    _require(body.app_id, "app_id is required")

    token = await _service(request).login(body.email, body.password, body.app_id)
    resp = JSONResponse(status_code=200, content=LoginResponse(token=token).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/is-admin", response_model=IsAdminResponse)
async def is_admin(request: Request, body: IsAdminRequest) -> IsAdminResponse:
    _require(body.user_id, "user_id is required")

    result = await _service(request).is_admin(body.user_id)
    return IsAdminResponse(is_admin=result)


@router.post("/auth/validate-token", response_model=ValidateTokenResponse)
async def validate_token(request: Request, body: ValidateTokenRequest) -> ValidateTokenResponse:
    """Check a token. An invalid or expired token is is_valid=false, not an error."""
    _require(body.token, "token is required")

    try:
        user = await _service(request).validate_token(body.token)
    except AuthError as exc:
        if exc.kind is not ErrorKind.INVALID_TOKEN:
            raise
        return ValidateTokenResponse(is_valid=False)
    return ValidateTokenResponse(user_id=user.id, is_valid=True)


@router.get("/auth/users/{user_id}", response_model=UserResponse)
async def get_user(request: Request, user_id: int) -> UserResponse:
    user = await _service(request).get_user(user_id)
    return UserResponse.from_info(user)
