import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from auth import authorize
from auth.routes import check_name_rules, email_taken
from auth.tokens import check_password_rules, hash_password, verify_password
from database import commit_or_conflict, get_db
from errors import AuthError, ConflictError, NotFoundError, ValidationError
from filters import USER_DELETE_FILTERS, USER_FILTERS, apply_filter
from helpers import is_valid_email
from models import User, ROLES, ROLE_ADMIN, ROLE_USER
from schema import PasswordChange, UserDetail, UserResponse, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["users"])


def _with_relations(query):
    return query.options(selectinload(User.links), selectinload(User.visits))


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError(f"User not found with id {user_id}")
    return user


def _check_email_filter(attribute: str, data: str) -> None:
    if attribute.strip() == "email" and not is_valid_email(data):
        raise ValidationError("Invalid email format")


@router.get("/users")
def list_users(db: Session = Depends(get_db), current_user=Depends(authorize(ROLE_ADMIN))):
    users = db.query(User).order_by(User.id).all()
    return {"ok": True, "users": [UserResponse.model_validate(u) for u in users]}


@router.get("/users/all")
def list_users_with_relations(db: Session = Depends(get_db), current_user=Depends(authorize(ROLE_ADMIN))):
    users = _with_relations(db.query(User)).order_by(User.id).all()
    return {"ok": True, "users": [UserDetail.model_validate(u) for u in users]}


@router.get("/users/all/{user_id}")
def get_user_with_relations(user_id: int, db: Session = Depends(get_db), current_user=Depends(authorize(ROLE_USER))):
    user = _with_relations(db.query(User)).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User not found with id {user_id}")
    return {"ok": True, "user": UserDetail.model_validate(user)}


@router.get("/users/all/{attribute}/{data}")
def search_users_with_relations(attribute: str, data: str, db: Session = Depends(get_db),
                                current_user=Depends(authorize(ROLE_USER))):
    _check_email_filter(attribute, data)
    users = apply_filter(_with_relations(db.query(User)), USER_FILTERS, attribute, data).order_by(User.id).all()
    return {"ok": True, "users": [UserDetail.model_validate(u) for u in users]}


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), current_user=Depends(authorize(ROLE_USER))):
    return {"ok": True, "user": UserResponse.model_validate(_get_user(db, user_id))}


@router.get("/users/{attribute}/{data}")
def search_users(attribute: str, data: str, db: Session = Depends(get_db), current_user=Depends(authorize(ROLE_USER))):
    _check_email_filter(attribute, data)
    users = apply_filter(db.query(User), USER_FILTERS, attribute, data).order_by(User.id).all()
    return {"ok": True, "users": [UserResponse.model_validate(u) for u in users]}


@router.get("/count/all/users")
def count_users(db: Session = Depends(get_db), current_user=Depends(authorize(ROLE_ADMIN))):
    return {"ok": True, "count": db.query(User).count()}


@router.put("/users/change_password/{user_id}")
def change_password(user_id: int, req: PasswordChange, db: Session = Depends(get_db),
                    current_user=Depends(authorize(ROLE_USER))):
    check_password_rules(req.password)
    user = _get_user(db, user_id)
    if verify_password(req.password, user.hashed_password):
        raise ValidationError("The new password cannot be the same as the previous one")

    user.hashed_password = hash_password(req.password)
    db.commit()
    db.refresh(user)
    logger.info(f"Changed password for user {user.id}")
    return {"ok": True, "user": UserResponse.model_validate(user), "message": "User password updated"}


@router.put("/users/{user_id}")
def update_user(user_id: int, req: UserUpdate, db: Session = Depends(get_db),
                current_user=Depends(authorize(ROLE_USER))):
    if req.name is not None:
        check_name_rules(req.name)
    if req.email is not None and not is_valid_email(req.email):
        raise ValidationError("Invalid email format")
    if req.role is not None:
        if current_user.role != ROLE_ADMIN:
            raise AuthError("Unauthorized user")
        if req.role not in ROLES:
            raise ValidationError("Invalid role. You can use only 'user' or 'admin'")

    user = _get_user(db, user_id)

    if req.email is not None:
        email = req.email.strip()
        if email_taken(db, email, exclude_id=user.id):
            raise ConflictError("Email already exists")
        user.email = email
    if req.name is not None:
        user.name = req.name.strip()
    if req.birth_date is not None:
        user.birth_date = req.birth_date
    if req.role is not None:
        user.role = req.role

    commit_or_conflict(db, "Email already exists")
    db.refresh(user)
    logger.info(f"Updated user {user.id}")
    return {"ok": True, "user": UserResponse.model_validate(user), "message": "User updated"}


@router.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), current_user=Depends(authorize(ROLE_USER))):
    user = _get_user(db, user_id)
    deleted = UserResponse.model_validate(user)
    db.delete(user)
    db.commit()
    logger.info(f"Deleted user {user_id}")
    return {"ok": True, "user": deleted, "message": "User deleted"}


@router.delete("/users/{attribute}/{data}")
def delete_user_by_attribute(attribute: str, data: str, db: Session = Depends(get_db),
                             current_user=Depends(authorize(ROLE_USER))):
    user = apply_filter(db.query(User), USER_DELETE_FILTERS, attribute, data).order_by(User.id).first()
    if not user:
        raise NotFoundError(f"User not found with this {attribute}: {data}")
    deleted = UserResponse.model_validate(user)
    db.delete(user)
    db.commit()
    logger.info(f"Deleted user {deleted.id}")
    return {"ok": True, "user": deleted, "message": "User deleted"}
