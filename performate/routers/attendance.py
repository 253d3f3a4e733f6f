from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.schemas import AttendanceBulkRequest, AttendanceMarkRequest
from performate.services.attendance_service import (
    attendance_summary,
    list_archive,
    list_attendance,
    list_by_date_range,
    mark_attendance,
    mark_bulk,
    serialize_archive,
    serialize_attendance,
)


router = APIRouter(prefix='/api/attendance', tags=['Attendance'])


@router.get('')
def list_attendance_api(
    class_name: str | None = Query(default=None, alias='class'),
    attendance_date: date | None = Query(default=None, alias='date'),
    prayer: str | None = None,
    student_id: int | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    rows = call_service(
        db,
        lambda: list_attendance(
            db,
            class_name=class_name,
            attendance_date=attendance_date,
            prayer=prayer,
            student_id=student_id,
        ),
        retry=True,
    )
    return [serialize_attendance(row) for row in rows]


@router.post('')
def mark_attendance_api(
    payload: AttendanceMarkRequest,
    user: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    row = call_service(
        db,
        lambda: mark_attendance(
            db,
            student_id=payload.student_id,
            class_name=payload.class_name,
            status=payload.status,
            attendance_date=payload.attendance_date,
            prayer=payload.prayer,
            reason=payload.reason,
            marked_by=user['mentor_id'],
        ),
        retry=True,
    )
    return serialize_attendance(row)


@router.post('/bulk')
def mark_bulk_api(
    payload: AttendanceBulkRequest,
    user: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    records = [
        {
            'student_id': item.student_id,
            'class_name': item.class_name,
            'status': item.status,
            'attendance_date': item.attendance_date,
            'prayer': item.prayer,
            'reason': item.reason,
        }
        for item in payload.records
    ]
    rows = call_service(db, lambda: mark_bulk(db, records, marked_by=user['mentor_id']), retry=True)
    return {'ok': True, 'count': len(rows), 'records': [serialize_attendance(row) for row in rows]}


@router.get('/by-date-range')
def attendance_by_range_api(
    class_name: str | None = Query(default=None, alias='class'),
    start_date: date | None = None,
    end_date: date | None = None,
    prayer: str | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    rows = call_service(
        db,
        lambda: list_by_date_range(db, class_name=class_name, start_date=start_date, end_date=end_date, prayer=prayer),
        retry=True,
    )
    return [serialize_attendance(row) for row in rows]


@router.get('/archive')
def attendance_archive_api(
    class_name: str | None = Query(default=None, alias='class'),
    original_month: str | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    rows = call_service(db, lambda: list_archive(db, class_name=class_name, original_month=original_month), retry=True)
    return [serialize_archive(row) for row in rows]


@router.get('/summary')
def attendance_summary_api(
    class_name: str | None = Query(default=None, alias='class'),
    start_date: date | None = None,
    end_date: date | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return call_service(
        db,
        lambda: attendance_summary(db, class_name=class_name, start_date=start_date, end_date=end_date),
        retry=True,
    )
