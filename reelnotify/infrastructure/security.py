"""Security helpers for access token handling."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from reelnotify.config import get_settings

ALGORITHM = "HS256"


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Return a signed token identifying ``user_id``."""

    settings = get_settings()
    expire = datetime.now(tz=timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode(
        {"sub": str(user_id), "exp": expire}, settings.secret_key, algorithm=ALGORITHM
    )


def decode_access_token(token: str) -> int:
    """Return the user id carried by ``token``.

    Raises ``ValueError`` when the token is expired, tampered with or lacks a
    numeric subject.
    """

    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise ValueError("Could not validate credentials") from exc
    if user_id <= 0:
        raise ValueError("Could not validate credentials")
    return user_id
