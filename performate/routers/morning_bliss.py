from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.schemas import MorningBlissCreateRequest, WinnerUpdateRequest
from performate.services.accounting_service import AccountingService
from performate.services.morning_bliss_service import list_entries, list_toppers, serialize_entry, set_daily_winner


router = APIRouter(prefix='/api/morning-bliss', tags=['Morning Bliss'])


@router.get('')
def list_morning_bliss_api(
    class_name: str | None = Query(default=None, alias='class'),
    entry_date: date | None = Query(default=None, alias='date'),
    student_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    rows = call_service(
        db,
        lambda: list_entries(
            db,
            class_name=class_name,
            entry_date=entry_date,
            student_id=student_id,
            start_date=start_date,
            end_date=end_date,
        ),
        retry=True,
    )
    return [serialize_entry(row) for row in rows]


@router.post('', status_code=201)
def create_morning_bliss_api(
    payload: MorningBlissCreateRequest,
    user: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    entry = call_service(
        db,
        lambda: AccountingService(db).record_morning_bliss(
            payload.student_id,
            payload.class_name,
            payload.topic,
            payload.score,
            payload.evaluated_by,
            payload.photo_urls,
            payload.entry_date,
            payload.is_topper,
            mentor_id=user['mentor_id'],
            mentor_short_form=user['short_form'],
            is_daily_winner=payload.is_daily_winner,
        ),
    )
    return serialize_entry(entry)


@router.get('/toppers')
def list_toppers_api(
    class_name: str | None = Query(default=None, alias='class'),
    start_date: date | None = None,
    end_date: date | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    rows = call_service(
        db,
        lambda: list_toppers(db, class_name=class_name, start_date=start_date, end_date=end_date),
        retry=True,
    )
    return [serialize_entry(row) for row in rows]


@router.put('/{entry_id}/winner')
def set_winner_api(
    entry_id: int,
    payload: WinnerUpdateRequest,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    entry = call_service(db, lambda: set_daily_winner(db, entry_id, payload.is_daily_winner))
    return serialize_entry(entry)
