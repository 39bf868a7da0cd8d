import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session, selectinload

from auth import authorize
from database import get_db
from errors import NotFoundError, ValidationError
from filters import VISIT_FILTERS, apply_date_range, apply_filter
from helpers import get_geo_from_ip, is_valid_ip
from models import Link, User, Visit, ROLE_ADMIN, ROLE_USER
from schema import VisitCreate, VisitDetail, VisitResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["visits"])


def _with_relations(query):
    return query.options(selectinload(Visit.user), selectinload(Visit.link))


def _get_visit(db: Session, visit_id: int) -> Visit:
    visit = db.get(Visit, visit_id)
    if not visit:
        raise NotFoundError(f"Link visited not found with id {visit_id}")
    return visit


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def record_visit(db: Session, req: VisitCreate, fallback_ip: Optional[str] = None) -> Visit:
    """Store one visit against an existing link.

    An unparsable IP is stored as null rather than rejected.
    """
    if req.id_link is None:
        raise ValidationError("id_link is required")
    if db.get(Link, req.id_link) is None:
        raise ValidationError("Link does not exist")
    if req.id_user is not None and db.get(User, req.id_user) is None:
        raise ValidationError("User does not exist")

    ip = req.ip_address if req.ip_address is not None else fallback_ip
    ip = ip if is_valid_ip(ip) else None

    country, city = req.country, req.city
    if ip and not (country and city):
        geo_country, geo_city = get_geo_from_ip(ip)
        country = country or (geo_country[:50] if geo_country else None)
        city = city or (geo_city[:100] if geo_city else None)

    visit = Visit(
        operating_system=req.operating_system,
        browser=req.browser,
        ip_address=ip,
        country=country,
        city=city,
        id_user=req.id_user,
        id_link=req.id_link,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)
    logger.info(f"Recorded visit {visit.id} for link {visit.id_link}")
    return visit


@router.post("/linksVisited", status_code=201)
def create_visit(req: VisitCreate, request: Request, db: Session = Depends(get_db)):
    visit = record_visit(db, req, client_ip(request))
    return {"ok": True, "visit": VisitResponse.model_validate(visit), "message": "New visited link created"}


@router.get("/linksvisited")
def list_visits(db: Session = Depends(get_db), user=Depends(authorize(ROLE_ADMIN))):
    visits = db.query(Visit).order_by(Visit.id).all()
    return {"ok": True, "visits": [VisitResponse.model_validate(v) for v in visits]}


@router.get("/linksvisited/all")
def list_visits_with_relations(db: Session = Depends(get_db), user=Depends(authorize(ROLE_ADMIN))):
    visits = _with_relations(db.query(Visit)).order_by(Visit.id).all()
    return {"ok": True, "visits": [VisitDetail.model_validate(v) for v in visits]}


@router.get("/linksvisited/date/{initial_date}/{final_date}")
def list_visits_by_date(initial_date: str, final_date: str, db: Session = Depends(get_db),
                        user=Depends(authorize(ROLE_USER))):
    query = apply_date_range(db.query(Visit), Visit.visited_date, initial_date, final_date)
    visits = query.order_by(Visit.visited_date).all()
    return {"ok": True, "visits": [VisitResponse.model_validate(v) for v in visits]}


@router.get("/linksvisited/id_user/{id_user}")
def list_user_visits(id_user: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    visits = db.query(Visit).filter(Visit.id_user == id_user).order_by(Visit.id).all()
    return {"ok": True, "visits": [VisitResponse.model_validate(v) for v in visits]}


@router.get("/linksvisited/all/{visit_id}")
def get_visit_with_relations(visit_id: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    visit = _with_relations(db.query(Visit)).filter(Visit.id == visit_id).first()
    if not visit:
        raise NotFoundError(f"Link visited not found with id {visit_id}")
    return {"ok": True, "visit": VisitDetail.model_validate(visit)}


@router.get("/linksvisited/all/{attribute}/{data}")
def search_visits_with_relations(attribute: str, data: str, db: Session = Depends(get_db),
                                 user=Depends(authorize(ROLE_USER))):
    visits = apply_filter(_with_relations(db.query(Visit)), VISIT_FILTERS, attribute, data).order_by(Visit.id).all()
    return {"ok": True, "visits": [VisitDetail.model_validate(v) for v in visits]}


@router.get("/linksvisited/{visit_id}")
def get_visit(visit_id: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    return {"ok": True, "visit": VisitResponse.model_validate(_get_visit(db, visit_id))}


@router.get("/linksvisited/{attribute}/{data}")
def search_visits(attribute: str, data: str, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    visits = apply_filter(db.query(Visit), VISIT_FILTERS, attribute, data).order_by(Visit.id).all()
    return {"ok": True, "visits": [VisitResponse.model_validate(v) for v in visits]}


@router.get("/count/id_user/{id_user}/linksVisited")
def count_user_visits(id_user: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    return {"ok": True, "count": db.query(Visit).filter(Visit.id_user == id_user).count()}


@router.get("/count/all/linksVisited")
def count_visits(db: Session = Depends(get_db), user=Depends(authorize(ROLE_ADMIN))):
    return {"ok": True, "count": db.query(Visit).count()}


@router.delete("/linksvisited/{visit_id}")
def delete_visit(visit_id: int, db: Session = Depends(get_db), user=Depends(authorize(ROLE_USER))):
    visit = _get_visit(db, visit_id)
    deleted = VisitResponse.model_validate(visit)
    db.delete(visit)
    db.commit()
    logger.info(f"Deleted visit {visit_id}")
    return {"ok": True, "visit": deleted, "message": "Link visited deleted"}
