import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import commit_or_conflict, get_db
from errors import AuthError, ConflictError, ValidationError
from helpers import is_valid_email
from models import User, ROLE_USER
from schema import LoginRequest, UserCreate, UserResponse
from .tokens import check_password_rules, create_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["auth"])

MIN_NAME_LENGTH = 4


def email_taken(db: Session, email: str, exclude_id=None) -> bool:
    query = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def check_name_rules(name) -> None:
    if not isinstance(name, str) or len(name.strip()) < MIN_NAME_LENGTH:
        raise ValidationError("Name must have more than 3 characters")


@router.post("/register", status_code=201)
def register(req: UserCreate, db: Session = Depends(get_db)):
    email = req.email.strip()
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")
    check_name_rules(req.name)
    check_password_rules(req.password)

    if email_taken(db, email):
        raise ConflictError("Email already exists")

    user = User(
        email=email,
        hashed_password=hash_password(req.password),
        name=req.name.strip(),
        birth_date=req.birth_date,
        role=ROLE_USER,
    )
    db.add(user)
    commit_or_conflict(db, "Email already exists")
    db.refresh(user)
    logger.info(f"Registered user {user.id}")

    return {
        "ok": True,
        "token": create_token(user.email),
        "user": UserResponse.model_validate(user),
        "message": "New user created",
    }


@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    email = req.email.strip()
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(req.password, user.hashed_password):
        logger.info("Failed login attempt")
        raise AuthError("Invalid email or password")

    return {
        "ok": True,
        "token": create_token(user.email),
        "user": UserResponse.model_validate(user),
        "message": "Login successful",
    }
