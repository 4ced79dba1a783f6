"""
auth/tokens.py -- Session token signing and verification (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Every token is signed with the secret of the
       app it was issued for and carries uid, email, app_id, iat and exp.

  One failure value: verify_token() raises AuthError(INVALID_TOKEN) for a bad
       signature, a foreign algorithm, an expired token and a malformed
       payload alike. The underlying JWTError is chained as __cause__ so the
       service can log it; callers never see which check failed.

  Algorithm confusion: the header alg is checked against HS256 before any
       decoding, and jose is also told to accept HS256 only. A token claiming
       "none" or an asymmetric algorithm is rejected even if the secret would
       happen to verify it.

  Secret selection: peek_app_id() reads the app_id claim WITHOUT verifying
       it. That value only chooses which secret to verify with -- a forged
       app_id just selects a secret the forger does not hold, and
       verify_token() then fails.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import AuthError, ErrorKind
from auth.models import MAX_ID, Claims

_ALGORITHM = "HS256"


def issue_token(user_id: int, email: str, app_id: int, secret: str, ttl: timedelta) -> str:
    """Encode a signed JWT for user_id, valid for ttl from now.

    Args:
        user_id: Numeric user ID stored in the DB.
        email:   The user's email, re-resolved by the service on validation.
        app_id:  ID of the app the token is scoped to.
        secret:  That app's signing secret.
        ttl:     Token lifetime. Expiry is issue time + ttl.
    """
    if not secret:
        raise ValueError("app secret must not be empty")
    now = datetime.now(timezone.utc)
    payload = {
        "uid": user_id,
        "email": email,
        "app_id": app_id,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def verify_token(token: str, secret: str) -> Claims:
    """Verify signature, algorithm and expiry; return the embedded claims."""
    if not token or not secret:
        raise AuthError(ErrorKind.INVALID_TOKEN)
    try:
        header = jwt.get_unverified_header(token)
        if header.get("alg") != _ALGORITHM:
            raise JWTError(f"unexpected signing method: {header.get('alg')!r}")
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            options={"require_exp": True},
        )
        return _payload_to_claims(payload)
    except JWTError as exc:
        raise AuthError(ErrorKind.INVALID_TOKEN) from exc


def peek_app_id(token: str) -> int:
    """Return the unverified app_id claim. Only use it to pick a secret."""
    try:
        payload = jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise AuthError(ErrorKind.INVALID_TOKEN) from exc
    app_id = payload.get("app_id")
    if not _is_id(app_id):
        raise AuthError(ErrorKind.INVALID_TOKEN)
    return app_id


def _payload_to_claims(payload: dict) -> Claims:
    uid = payload.get("uid")
    email = payload.get("email")
    app_id = payload.get("app_id")
    exp = payload.get("exp")
    if not _is_id(uid) or not _is_id(app_id) or not isinstance(email, str) or not email:
        raise JWTError("token payload is missing uid, email or app_id")
    if not isinstance(exp, (int, float)):
        raise JWTError("token payload has no numeric exp")
    return Claims(
        user_id=uid,
        email=email,
        app_id=app_id,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
    )


def _is_id(value) -> bool:
    # bool is an int subclass; True must not pass as id 1
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ID
