from __future__ import annotations

import csv
import io
import logging
from datetime import date

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from sqlalchemy import select
from sqlalchemy.orm import Session

from performate.core.storage import storage_guard
from performate.core.time_provider import TimeProvider, default_time_provider
from performate.models import Student, TallyHistory
from performate.services import attendance_service, morning_bliss_service, student_service


logger = logging.getLogger(__name__)

STUDENT_COLUMNS = ['Name', 'Roll No', 'Class', 'Tallies', 'Stars', 'Other', 'Net Tallies', 'Fine', 'Other Fine']
HISTORY_COLUMNS = ['Student', 'Class', 'Short Form', 'Type', 'Reason', 'Tally', 'Date & Time']
ATTENDANCE_COLUMNS = ['Student', 'Roll', 'Present', 'Absent', 'Hospital', 'Program', 'Reported', 'Status']
MORNING_BLISS_COLUMNS = ['Student', 'Class', 'Date', 'Topic', 'Score', 'Stars', 'Topper', 'Winner']


def _to_csv(header: list[str], rows: list[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def _student_rows(db: Session, class_name: str | None) -> list[list]:
    return [
        [
            row['name'],
            row['roll_number'],
            row['class'],
            row['tallies'],
            row['stars'],
            row['other_tallies'],
            row['net_tallies'],
            row['fine_amount'],
            row['other_fine_amount'],
        ]
        for row in student_service.list_with_stats(db, class_name)
    ]


def students_csv(db: Session, class_name: str | None = None) -> str:
    return _to_csv(STUDENT_COLUMNS, _student_rows(db, class_name))


def history_csv(db: Session, *, class_name: str | None = None, student_id: int | None = None) -> str:
    stmt = select(TallyHistory, Student.name).join(Student, Student.id == TallyHistory.student_id)
    if class_name:
        stmt = stmt.where(TallyHistory.class_name == class_name)
    if student_id:
        stmt = stmt.where(TallyHistory.student_id == int(student_id))
    stmt = stmt.order_by(TallyHistory.created_at.desc(), TallyHistory.id.desc())
    with storage_guard(db, 'history_report'):
        records = db.execute(stmt).all()
    rows = [
        [
            student_name,
            entry.class_name,
            entry.mentor_short_form,
            entry.category,
            entry.reason or '',
            entry.tally_value,
            entry.created_at.strftime('%Y-%m-%d %H:%M') if entry.created_at else '',
        ]
        for entry, student_name in records
    ]
    return _to_csv(HISTORY_COLUMNS, rows)


def attendance_csv(
    db: Session,
    *,
    class_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> str:
    summary = attendance_service.attendance_summary(db, class_name=class_name, start_date=start_date, end_date=end_date)
    rows = [
        [
            entry['name'],
            entry['roll_number'],
            entry['present'],
            entry['absent'],
            entry['hospital'],
            entry['program'],
            entry['reported'],
            entry['sheet_status'],
        ]
        for entry in summary['students']
    ]
    return _to_csv(ATTENDANCE_COLUMNS, rows)


def morning_bliss_csv(
    db: Session,
    *,
    class_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> str:
    entries = morning_bliss_service.list_entries(db, class_name=class_name, start_date=start_date, end_date=end_date)
    rows = [
        [
            entry.student.name if entry.student is not None else '',
            entry.class_name,
            entry.entry_date.isoformat() if entry.entry_date else '',
            entry.topic,
            entry.score,
            entry.stars_awarded,
            'Yes' if entry.is_topper else 'No',
            'Yes' if entry.is_daily_winner else 'No',
        ]
        for entry in entries
    ]
    return _to_csv(MORNING_BLISS_COLUMNS, rows)


def students_pdf(
    db: Session,
    class_name: str | None = None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> bytes:
    """Class performance report laid out on A4 pages."""
    rows = _student_rows(db, class_name)
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    x = 15 * mm
    offsets = [0, 50, 72, 90, 108, 124, 140, 160, 175]

    def _header(y: float) -> float:
        c.setFont('Helvetica-Bold', 9)
        for label, offset in zip(STUDENT_COLUMNS, offsets):
            c.drawString(x + offset * mm, y, label)
        y -= 4 * mm
        c.line(x, y, width - 15 * mm, y)
        c.setFont('Helvetica', 9)
        return y - 5 * mm

    y = height - 20 * mm
    c.setFont('Helvetica-Bold', 14)
    c.drawString(x, y, f'Class Performance Report: {class_name or "All classes"}')
    y -= 7 * mm
    c.setFont('Helvetica', 10)
    c.drawString(x, y, f'Generated {time_provider.now().strftime("%Y-%m-%d %H:%M")}')
    y -= 10 * mm
    y = _header(y)

    for row in rows:
        if y < 20 * mm:
            c.showPage()
            y = _header(height - 20 * mm)
        for value, offset in zip(row, offsets):
            c.drawString(x + offset * mm, y, str(value)[:28])
        y -= 6 * mm

    c.showPage()
    c.save()
    pdf = buffer.getvalue()
    buffer.close()
    logger.info('students_pdf_rendered class=%s rows=%s bytes=%s', class_name or '*', len(rows), len(pdf))
    return pdf
