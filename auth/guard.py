import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from errors import AuthError
from models import User, ROLE_ADMIN, ROLE_USER
from .tokens import decode_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def has_role(user_role: str, required_role: Optional[str]) -> bool:
    """Admins pass every user-level check."""
    if not required_role:
        return True
    if required_role == ROLE_USER:
        return user_role in (ROLE_USER, ROLE_ADMIN)
    if required_role == ROLE_ADMIN:
        return user_role == ROLE_ADMIN
    return False


def authorize(required_role: Optional[str] = None):
    """Build a dependency that authenticates the bearer token and checks the role.

    The dependency returns the authenticated User, or None when the route
    needs no role and the request carries no token.
    """

    def dependency(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Session = Depends(get_db),
    ) -> Optional[User]:
        if credentials is None:
            if not required_role:
                return None
            raise AuthError("Unauthorized user")

        claims = decode_token(credentials.credentials)
        user = db.query(User).filter(User.email == claims.get("email")).first()
        if user is None:
            logger.info("Token refers to an unknown user")
            raise AuthError("User not found")

        if not has_role(user.role, required_role):
            logger.info(f"User {user.id} with role {user.role} denied {required_role} route")
            raise AuthError("Unauthorized user")
        return user

    return dependency
