import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError

import config
from errors import AuthError, ValidationError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def _secret() -> str:
    if not config.TOKEN_SECRET:
        raise RuntimeError("TOKEN_SECRET is not configured")
    return config.TOKEN_SECRET


def create_token(email: str) -> str:
    """Issue a signed bearer token carrying the user's email."""
    expire = datetime.now(timezone.utc) + timedelta(hours=config.TOKEN_EXPIRE_HOURS)
    return jwt.encode({"email": email, "exp": expire}, _secret(), algorithm=config.TOKEN_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Verify a bearer token and return its claims."""
    try:
        return jwt.decode(token, _secret(), algorithms=[config.TOKEN_ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Rejected expired token")
        raise AuthError("Token expired")
    except JWTError as e:
        logger.info(f"Rejected invalid token: {e}")
        raise AuthError(f"Invalid token: {e}")


def check_password_rules(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("The password must have at least 8 characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError("The password must have at most 72 bytes")


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
