"""Security helpers for issuing and verifying access tokens."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import get_settings


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode(
        {**data, "exp": expire}, settings.secret_key, algorithm=settings.token_algorithm
    )


def decode_access_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.token_algorithm])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc


def get_username_from_token(token: str) -> str:
    """Verify ``token`` and return the canonical username it was issued to.

    Malformed, expired or tampered tokens, and tokens without a subject, raise
    ``ValueError``.
    """

    payload = decode_access_token(token)
    username = payload.get("sub")
    if not isinstance(username, str) or not username.strip():
        raise ValueError("Token does not identify a user")
    return username
