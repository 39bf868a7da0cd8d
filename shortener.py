"""Short link allocation and lookup."""
import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import config
from errors import ConflictError, ExhaustedError, NotFoundError, StorageError, ValidationError
from helpers import generate_short_link, normalize_url
from models import Link, User

logger = logging.getLogger(__name__)


def short_link_exists(db: Session, short_link: str) -> bool:
    try:
        return db.query(Link.id).filter(Link.short_link == short_link).first() is not None
    except SQLAlchemyError as e:
        logger.error(f"Short link lookup failed: {e}")
        raise StorageError("Storage backend unavailable") from e


def find_user_link(db: Session, original_link: str, id_user: int) -> Optional[Link]:
    try:
        return db.query(Link).filter(
            Link.original_link == original_link,
            Link.id_user == id_user,
        ).first()
    except SQLAlchemyError as e:
        logger.error(f"Link lookup failed: {e}")
        raise StorageError("Storage backend unavailable") from e


def allocate_link(db: Session, original_link, id_user, max_attempts: Optional[int] = None) -> Link:
    """Create a Link with a fresh short code for ``original_link`` owned by ``id_user``.

    Every candidate code is checked before insert, and the unique constraints
    on the table are the final arbiter: a constraint violation on commit is
    either a duplicate (user, URL) pair created concurrently, reported as a
    ConflictError, or a short code taken in the meantime, which costs one
    attempt. ExhaustedError is raised once ``max_attempts`` candidates failed.
    """
    original_link = normalize_url(original_link)
    if id_user is None:
        raise ValidationError("User ID is required")
    if max_attempts is None:
        max_attempts = config.SHORT_LINK_MAX_ATTEMPTS

    try:
        owner = db.get(User, id_user)
    except SQLAlchemyError as e:
        raise StorageError("Storage backend unavailable") from e
    if owner is None:
        raise ValidationError("User does not exist")

    if find_user_link(db, original_link, id_user):
        raise ConflictError("Link already exists for this user")

    for attempt in range(1, max_attempts + 1):
        short_link = generate_short_link()
        if short_link_exists(db, short_link):
            logger.warning(f"Short link collision on {short_link} (attempt {attempt}/{max_attempts})")
            continue

        link = Link(original_link=original_link, short_link=short_link, id_user=id_user)
        db.add(link)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if find_user_link(db, original_link, id_user):
                raise ConflictError("Link already exists for this user")
            if db.query(User.id).filter(User.id == id_user).first() is None:
                logger.warning(f"Owner {id_user} deleted while allocating a short link")
                raise ValidationError("User does not exist")
            logger.warning(f"Short link {short_link} taken concurrently (attempt {attempt}/{max_attempts})")
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store link: {e}")
            raise StorageError("Storage backend unavailable") from e

        db.refresh(link)
        logger.info(f"Allocated short link {short_link} for user {id_user}")
        return link

    logger.error(f"No free short link after {max_attempts} attempts")
    raise ExhaustedError("Could not allocate a unique short link")


def strip_domain(raw: str, domain: Optional[str] = None) -> str:
    if domain is None:
        domain = config.SHORT_LINK_DOMAIN
    if not domain:
        return raw
    return re.sub(rf"^https?://{re.escape(domain)}/", "", raw, count=1)


def resolve_short_link(db: Session, raw: str, domain: Optional[str] = None) -> str:
    """Return the original URL for a short code, with or without the domain prefix."""
    short_link = strip_domain(raw.strip(), domain)
    try:
        link = db.query(Link).filter(Link.short_link == short_link).first()
    except SQLAlchemyError as e:
        logger.error(f"Short link lookup failed: {e}")
        raise StorageError("Storage backend unavailable") from e
    if not link:
        raise NotFoundError("Short link not found")
    return link.original_link
