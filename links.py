import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from auth import authorize
from database import commit_or_conflict, get_db
from errors import ConflictError, NotFoundError
from filters import LINK_FILTERS, apply_date_range, apply_filter
from helpers import normalize_url
from models import Link, ROLE_ADMIN, ROLE_USER
from schema import LinkCreate, LinkDetail, LinkResponse, LinkUpdate
from shortener import allocate_link, resolve_short_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["links"])


def _with_relations(query):
    return query.options(selectinload(Link.user), selectinload(Link.visits))


def find_duplicate_link(db: Session, link: Link, original_link: str):
    return db.query(Link).filter(
        Link.id_user == link.id_user,
        Link.original_link == original_link,
        Link.id != link.id,
    ).first()


def _get_link(db: Session, link_id: int) -> Link:
    link = db.get(Link, link_id)
    if not link:
        raise NotFoundError(f"Link not found with id {link_id}")
    return link


@router.post("/createLinks", status_code=201)
def create_link(req: LinkCreate, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    link = allocate_link(db, req.original_link, req.id_user)
    return {"ok": True, "link": LinkResponse.model_validate(link), "message": "New short link created"}


@router.get("/links")
def list_links(db: Session = Depends(get_db), user=Depends(authorize(ROLE_ADMIN))):
    links = db.query(Link).order_by(Link.id).all()
    return {"ok": True, "links": [LinkResponse.model_validate(link) for link in links]}


@router.get("/links/all")
def list_links_with_relations(db: Session = Depends(get_db), user=Depends(authorize(ROLE_ADMIN))):
    links = _with_relations(db.query(Link)).order_by(Link.id).all()
    return {"ok": True, "links": [LinkDetail.model_validate(link) for link in links]}


# Public: this is the redirect resolution path
@router.get("/links/original/{short_link:path}")
def get_original_link(short_link: str, db: Session = Depends(get_db)):
    return {"ok": True, "original_link": resolve_short_link(db, short_link)}


@router.get("/links/date/{initial_date}/{final_date}")
def list_links_by_date(initial_date: str, final_date: str, db: Session = Depends(get_db),
                       user=Depends(authorize(ROLE_USER))):
    query = apply_date_range(db.query(Link), Link.registration_date, initial_date, final_date)
    links = query.order_by(Link.registration_date).all()
    return {"ok": True, "links": [LinkResponse.model_validate(link) for link in links]}


@router.get("/links/all/{link_id}")
def get_link_with_relations(link_id: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    link = _with_relations(db.query(Link)).filter(Link.id == link_id).first()
    if not link:
        raise NotFoundError(f"Link not found with id {link_id}")
    return {"ok": True, "link": LinkDetail.model_validate(link)}


@router.get("/links/all/{attribute}/{data}")
def search_links_with_relations(attribute: str, data: str, db: Session = Depends(get_db),
                                user=Depends(authorize(ROLE_USER))):
    links = apply_filter(_with_relations(db.query(Link)), LINK_FILTERS, attribute, data).order_by(Link.id).all()
    return {"ok": True, "links": [LinkDetail.model_validate(link) for link in links]}


@router.get("/links/{link_id}")
def get_link(link_id: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    return {"ok": True, "link": LinkResponse.model_validate(_get_link(db, link_id))}


@router.get("/links/{attribute}/{data}")
def search_links(attribute: str, data: str, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    links = apply_filter(db.query(Link), LINK_FILTERS, attribute, data).order_by(Link.id).all()
    return {"ok": True, "links": [LinkResponse.model_validate(link) for link in links]}


@router.get("/count/id_user/{id_user}/links")
def count_user_links(id_user: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    return {"ok": True, "count": db.query(Link).filter(Link.id_user == id_user).count()}


@router.get("/count/all/links")
def count_links(db: Session = Depends(get_db), user=Depends(authorize(ROLE_ADMIN))):
    return {"ok": True, "count": db.query(Link).count()}


@router.put("/links/{link_id}")
def update_link(link_id: int, req: LinkUpdate, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    original_link = normalize_url(req.original_link)
    link = _get_link(db, link_id)

    if find_duplicate_link(db, link, original_link):
        raise ConflictError("Link already exists for this user")

    link.original_link = original_link
    commit_or_conflict(db, "Link already exists for this user")
    db.refresh(link)
    logger.info(f"Updated link {link.id}")
    return {"ok": True, "link": LinkResponse.model_validate(link), "message": "Link updated"}


@router.delete("/links/{link_id}")
def delete_link(link_id: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    link = _get_link(db, link_id)
    deleted = LinkResponse.model_validate(link)
    db.delete(link)
    db.commit()
    logger.info(f"Deleted link {link_id}")
    return {"ok": True, "link": deleted, "message": "Link deleted"}
