import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from .core.config import settings

# =========================
# Contact normalization
# =========================
def normalize_email(email: Optional[str]) -> str:
    """Trim and lowercase an email so it can be used as an identity key."""
    return (email or "").strip().lower()


# =========================
# JWT Token Handling
# =========================
def create_jwt_token(data: dict, expires_in: timedelta = timedelta(hours=24)):
    """Create JWT access token with expiration (24 hours by default)"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_in
    to_encode.update({"exp": expire, "type": "access"})

    # Ensure SECRET_KEY is properly set
    if not settings.SECRET_KEY or settings.SECRET_KEY == "change-me-in-prod":
        raise ValueError("SECRET_KEY not properly configured")

    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def decode_jwt_token(token: str):
    """Decode and verify JWT token"""
    try:
        # Ensure SECRET_KEY is properly set
        if not settings.SECRET_KEY or settings.SECRET_KEY == "change-me-in-prod":
            return None

        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
