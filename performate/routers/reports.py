from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.services import report_service


router = APIRouter(prefix='/api/reports', tags=['Reports'])


def _attachment(content, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


def _suffix(class_name: str | None) -> str:
    return f'_{class_name}' if class_name else ''


@router.get('/students.csv')
def students_csv_api(
    class_name: str | None = Query(default=None, alias='class'),
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    content = call_service(db, lambda: report_service.students_csv(db, class_name), retry=True)
    return _attachment(content, 'text/csv', f'students{_suffix(class_name)}.csv')


@router.get('/students.pdf')
def students_pdf_api(
    class_name: str | None = Query(default=None, alias='class'),
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    content = call_service(db, lambda: report_service.students_pdf(db, class_name), retry=True)
    return _attachment(content, 'application/pdf', f'performance{_suffix(class_name)}.pdf')


@router.get('/history.csv')
def history_csv_api(
    class_name: str | None = Query(default=None, alias='class'),
    student_id: int | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    content = call_service(
        db,
        lambda: report_service.history_csv(db, class_name=class_name, student_id=student_id),
        retry=True,
    )
    return _attachment(content, 'text/csv', f'history{_suffix(class_name)}.csv')


@router.get('/attendance.csv')
def attendance_csv_api(
    class_name: str | None = Query(default=None, alias='class'),
    start_date: date | None = None,
    end_date: date | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    content = call_service(
        db,
        lambda: report_service.attendance_csv(db, class_name=class_name, start_date=start_date, end_date=end_date),
        retry=True,
    )
    return _attachment(content, 'text/csv', f'attendance{_suffix(class_name)}.csv')


@router.get('/morning-bliss.csv')
def morning_bliss_csv_api(
    class_name: str | None = Query(default=None, alias='class'),
    start_date: date | None = None,
    end_date: date | None = None,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    content = call_service(
        db,
        lambda: report_service.morning_bliss_csv(db, class_name=class_name, start_date=start_date, end_date=end_date),
        retry=True,
    )
    return _attachment(content, 'text/csv', f'morning_bliss{_suffix(class_name)}.csv')
