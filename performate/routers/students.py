from itertools import islice

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.schemas import StudentCreate, StudentUpdate
from performate.services.accounting_service import AccountingService
from performate.services.ledger_store import LedgerStore
from performate.services.student_service import (
    create_student,
    delete_student,
    get_student,
    list_students,
    list_with_stats,
    serialize_student,
    update_student,
)


router = APIRouter(prefix='/api/students', tags=['Students'])


def _serialize_history(row) -> dict:
    return {
        'id': row.id,
        'student_id': row.student_id,
        'class': row.class_name,
        'mentor_id': row.mentor_id,
        'mentor_short_form': row.mentor_short_form,
        'category': row.category,
        'reason': row.reason,
        'tally_value': row.tally_value,
        'created_at': row.created_at.isoformat() if row.created_at else None,
    }


@router.get('')
def list_students_api(
    class_name: str | None = Query(default=None, alias='class'),
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    rows = call_service(db, lambda: list_students(db, class_name), retry=True)
    return [serialize_student(row) for row in rows]


@router.get('/with-stats')
def list_students_with_stats_api(
    class_name: str | None = Query(default=None, alias='class'),
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return call_service(db, lambda: list_with_stats(db, class_name), retry=True)


@router.post('', status_code=201)
def create_student_api(payload: StudentCreate, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    row = call_service(
        db,
        lambda: create_student(
            db,
            name=payload.name,
            roll_number=payload.roll_number,
            class_name=payload.class_name,
            photo_url=payload.photo_url,
        ),
    )
    return serialize_student(row)


@router.put('/{student_id}')
def update_student_api(
    student_id: int,
    payload: StudentUpdate,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    row = call_service(
        db,
        lambda: update_student(
            db,
            student_id,
            name=payload.name,
            roll_number=payload.roll_number,
            class_name=payload.class_name,
            photo_url=payload.photo_url,
        ),
    )
    return serialize_student(row)


@router.delete('/{student_id}')
def delete_student_api(student_id: int, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    call_service(db, lambda: delete_student(db, student_id))
    return {'ok': True, 'id': student_id}


@router.get('/{student_id}/history')
def student_history_api(
    student_id: int,
    limit: int = Query(default=200, ge=1, le=1000),
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    def _load():
        get_student(db, student_id)
        return [_serialize_history(row) for row in islice(LedgerStore(db).list_history(student_id), limit)]

    return call_service(db, _load, retry=True)


@router.get('/{student_id}/net-fine')
def student_net_fine_api(student_id: int, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    result = call_service(db, lambda: AccountingService(db).net_fine(student_id), retry=True)
    return result.as_dict()
