from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.models import CounterKind, TallyCategory
from performate.routers.tallies import apply_from_request
from performate.schemas import ReasonWrite, StarCreateRequest
from performate.services.reason_catalog import ReasonCatalog, serialize_reason
from performate.services.student_service import list_counter_rows


router = APIRouter(prefix='/api/stars', tags=['Stars'])


@router.get('')
def list_stars_api(
    class_name: str | None = Query(default=None, alias='class'),
    student_id: int | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return call_service(db, lambda: list_counter_rows(db, CounterKind.STAR, class_name, student_id), retry=True)


@router.post('')
def add_star_api(
    payload: StarCreateRequest,
    idempotency_key: str | None = Header(default=None, alias='Idempotency-Key'),
    user: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return apply_from_request(db, TallyCategory.STAR, payload, user, idempotency_key, source=payload.source)


@router.get('/reasons')
def list_star_reasons_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    rows = call_service(db, lambda: ReasonCatalog(db).list(TallyCategory.STAR), retry=True)
    return [serialize_reason(row, TallyCategory.STAR) for row in rows]


@router.post('/reasons', status_code=201)
def create_star_reason_api(payload: ReasonWrite, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    row = call_service(db, lambda: ReasonCatalog(db).create(TallyCategory.STAR, payload.reason, payload.value))
    return serialize_reason(row, TallyCategory.STAR)
