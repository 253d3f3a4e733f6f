from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.schemas import DirectorMessageCreate, ReasonImportRequest, ReasonWrite
from performate.services.auth_service import delete_mentor, list_mentors, serialize_mentor
from performate.services.class_service import seed_default_classes
from performate.services.director_message_service import create_message, delete_message, list_messages, serialize_message
from performate.services.ledger_store import LedgerStore
from performate.services.period_reset_service import PeriodResetService
from performate.services.reason_catalog import ReasonCatalog, coerce_category, serialize_reason


router = APIRouter(prefix='/api/admin', tags=['Admin'])

_EXPORT_MEDIA_TYPES = {'csv': 'text/csv', 'json': 'application/json'}


@router.get('/reasons/{category}')
def list_reasons_api(category: str, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    rows = call_service(db, lambda: ReasonCatalog(db).list(category), retry=True)
    return [serialize_reason(row, category) for row in rows]


@router.get('/reasons/{category}/export')
def export_reasons_api(
    category: str,
    format: Literal['csv', 'json'] = 'csv',
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    content = call_service(db, lambda: ReasonCatalog(db).export_to_delimited_text(category, format), retry=True)
    clean = coerce_category(category).value
    return Response(
        content=content,
        media_type=_EXPORT_MEDIA_TYPES[format],
        headers={'Content-Disposition': f'attachment; filename={clean}_reasons.{format}'},
    )


@router.post('/reasons/{category}/import', status_code=201)
def import_reasons_api(
    category: str,
    payload: ReasonImportRequest,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    rows = call_service(db, lambda: ReasonCatalog(db).import_from_delimited_text(category, payload.content, payload.format))
    return {'ok': True, 'imported': len(rows), 'reasons': [serialize_reason(row, category) for row in rows]}


@router.get('/reasons/{category}/{reason_id}')
def get_reason_api(category: str, reason_id: int, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    row = call_service(db, lambda: ReasonCatalog(db).get(category, reason_id), retry=True)
    return serialize_reason(row, category)


@router.post('/reasons/{category}', status_code=201)
def create_reason_api(
    category: str,
    payload: ReasonWrite,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    row = call_service(db, lambda: ReasonCatalog(db).create(category, payload.reason, payload.value))
    return serialize_reason(row, category)


@router.put('/reasons/{category}/{reason_id}')
def update_reason_api(
    category: str,
    reason_id: int,
    payload: ReasonWrite,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    row = call_service(db, lambda: ReasonCatalog(db).update(category, reason_id, payload.reason, payload.value))
    return serialize_reason(row, category)


@router.delete('/reasons/{category}/{reason_id}')
def delete_reason_api(
    category: str,
    reason_id: int,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    call_service(db, lambda: ReasonCatalog(db).delete(category, reason_id))
    return {'ok': True, 'id': reason_id}


@router.post('/reset-monthly')
def reset_monthly_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return call_service(db, lambda: PeriodResetService(db).reset_monthly(), retry=True).as_dict()


@router.post('/reset-classes')
def reset_classes_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return call_service(db, lambda: PeriodResetService(db).reset_classes(), retry=True).as_dict()


@router.post('/reset-attendance')
def reset_attendance_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return call_service(db, lambda: PeriodResetService(db).reset_attendance(), retry=True).as_dict()


@router.post('/reset-morning-bliss')
def reset_morning_bliss_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return call_service(db, lambda: PeriodResetService(db).reset_morning_bliss(), retry=True).as_dict()


@router.post('/seed-classes')
def seed_classes_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return {'ok': True, 'created': call_service(db, lambda: seed_default_classes(db), retry=True)}


@router.get('/mentors')
def list_mentors_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return [serialize_mentor(row) for row in call_service(db, lambda: list_mentors(db), retry=True)]


@router.delete('/mentors/{mentor_id}')
def delete_mentor_api(mentor_id: int, user: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    if mentor_id == user['mentor_id']:
        raise HTTPException(status_code=400, detail='You cannot delete your own account')
    call_service(db, lambda: delete_mentor(db, mentor_id))
    return {'ok': True, 'id': mentor_id}


@router.delete('/history')
def purge_history_api(
    student_id: int | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    purged = call_service(db, lambda: LedgerStore(db).purge_history(student_id))
    return {'ok': True, 'deleted': purged}


@router.get('/voice-of-director')
def list_director_messages_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return [serialize_message(row) for row in call_service(db, lambda: list_messages(db), retry=True)]


@router.post('/voice-of-director', status_code=201)
def create_director_message_api(
    payload: DirectorMessageCreate,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return serialize_message(call_service(db, lambda: create_message(db, payload.title, payload.message)))


@router.delete('/voice-of-director/{message_id}')
def delete_director_message_api(message_id: int, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    call_service(db, lambda: delete_message(db, message_id))
    return {'ok': True, 'id': message_id}
