from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.models import CounterKind, TallyCategory
from performate.schemas import TallyCreateRequest
from performate.services.accounting_service import AccountingService, TallyResult
from performate.services.reason_catalog import ReasonCatalog, serialize_reason
from performate.services.student_service import list_counter_rows


router = APIRouter(prefix='/api/tallies', tags=['Tallies'])


def serialize_result(result: TallyResult) -> dict:
    return {
        'student_id': result.student_id,
        'category': result.category.value,
        'points': result.points,
        'new_total': result.new_total,
        'history_id': result.history_id,
        'duplicate': result.duplicate,
    }


def apply_from_request(
    db: Session,
    category: TallyCategory,
    payload: TallyCreateRequest,
    user: dict,
    idempotency_key: str | None,
    *,
    source: str = 'manual',
) -> dict:
    result = call_service(
        db,
        lambda: AccountingService(db).apply_tally(
            payload.student_id,
            payload.class_name,
            user['mentor_id'],
            payload.mentor_short_form or user['short_form'],
            category,
            reason_id=payload.reason_id,
            points=payload.count,
            reason_text=payload.reason,
            source=source,
            idempotency_key=idempotency_key,
        ),
        retry=True,
    )
    return serialize_result(result)


@router.get('')
def list_tallies_api(
    class_name: str | None = Query(default=None, alias='class'),
    student_id: int | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return call_service(db, lambda: list_counter_rows(db, CounterKind.TALLY, class_name, student_id), retry=True)


@router.post('')
def add_tally_api(
    payload: TallyCreateRequest,
    idempotency_key: str | None = Header(default=None, alias='Idempotency-Key'),
    user: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return apply_from_request(db, TallyCategory.CLASS, payload, user, idempotency_key)


@router.get('/other')
def list_other_tallies_api(
    class_name: str | None = Query(default=None, alias='class'),
    student_id: int | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return call_service(db, lambda: list_counter_rows(db, CounterKind.OTHER_TALLY, class_name, student_id), retry=True)


@router.post('/other')
def add_other_tally_api(
    payload: TallyCreateRequest,
    idempotency_key: str | None = Header(default=None, alias='Idempotency-Key'),
    user: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return apply_from_request(db, TallyCategory.PERFORMANCE, payload, user, idempotency_key)


@router.get('/reasons/class')
def list_class_reasons_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    rows = call_service(db, lambda: ReasonCatalog(db).list(TallyCategory.CLASS), retry=True)
    return [serialize_reason(row, TallyCategory.CLASS) for row in rows]


@router.get('/reasons/performance')
def list_performance_reasons_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    rows = call_service(db, lambda: ReasonCatalog(db).list(TallyCategory.PERFORMANCE), retry=True)
    return [serialize_reason(row, TallyCategory.PERFORMANCE) for row in rows]
