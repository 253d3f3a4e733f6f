from __future__ import annotations

import logging
import re
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.core.time_provider import TimeProvider, default_time_provider
from performate.core.upsert import upsert_statement
from performate.models import PRAYERS, AttendanceArchive, AttendanceRecord, AttendanceStatus, Student


logger = logging.getLogger(__name__)

VALID_STATUSES = tuple(status.value for status in AttendanceStatus)
ABSENCE_STATUSES = (
    AttendanceStatus.ABSENT.value,
    AttendanceStatus.HOSPITAL.value,
    AttendanceStatus.PROGRAM.value,
    AttendanceStatus.REPORTED.value,
)
BLACK_SHEET_ABSENCES = 6
YELLOW_SHEET_ABSENCES = 4
_MONTH_RE = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')


def sheet_status(total_absences: int) -> str:
    if total_absences >= BLACK_SHEET_ABSENCES:
        return 'Black Sheet'
    if total_absences >= YELLOW_SHEET_ABSENCES:
        return 'Yellow Sheet'
    return 'None'


def _normalize_prayer(prayer: str | None) -> str:
    clean = (prayer or '').strip()
    if not clean:
        return ''
    for known in PRAYERS:
        if known.lower() == clean.lower():
            return known
    raise ValidationError(f'Unknown prayer: {prayer}')


def _normalize_status(status: str | None) -> str:
    clean = (status or '').strip()
    for known in VALID_STATUSES:
        if known.lower() == clean.lower():
            return known
    raise ValidationError(f'Invalid attendance status: {status}')


def serialize_attendance(row) -> dict:
    return {
        'id': row.id,
        'student_id': row.student_id,
        'class': row.class_name,
        'date': row.attendance_date.isoformat() if row.attendance_date else None,
        'status': row.status,
        'prayer': row.prayer or None,
        'reason': row.reason,
        'marked_by': row.marked_by,
    }


def serialize_archive(row: AttendanceArchive) -> dict:
    payload = serialize_attendance(row)
    payload['original_month'] = row.original_month
    payload['archived_at'] = row.archived_at.isoformat() if row.archived_at else None
    return payload


def _prepare_record(db: Session, record: dict, time_provider: TimeProvider) -> dict:
    student_id = record.get('student_id')
    class_name = (record.get('class_name') or '').strip()
    if not student_id:
        raise ValidationError('student_id is required')
    if not class_name:
        raise ValidationError('class is required')
    status = _normalize_status(record.get('status'))
    prayer = _normalize_prayer(record.get('prayer'))
    with storage_guard(db, 'load_student'):
        student = db.get(Student, int(student_id))
    if student is None:
        raise ReferentialError('Student not found')
    return {
        'student_id': student.id,
        'class_name': class_name,
        'attendance_date': record.get('attendance_date') or time_provider.today(),
        'status': status,
        'prayer': prayer,
        'reason': record.get('reason'),
        'marked_by': record.get('marked_by'),
    }


def _write_record(db: Session, values: dict) -> AttendanceRecord:
    stmt = upsert_statement(
        db,
        AttendanceRecord,
        values,
        conflict_columns=['student_id', 'attendance_date', 'prayer'],
        update_values={'status': values['status'], 'reason': values['reason']},
    )
    key_filter = (
        AttendanceRecord.student_id == values['student_id'],
        AttendanceRecord.attendance_date == values['attendance_date'],
        AttendanceRecord.prayer == values['prayer'],
    )
    if stmt is not None:
        db.execute(stmt)
    else:
        row = db.execute(select(AttendanceRecord).where(*key_filter).with_for_update()).scalar_one_or_none()
        if row is None:
            db.add(AttendanceRecord(**values))
        else:
            row.status = values['status']
            row.reason = values['reason']
        db.flush()
    return db.execute(
        select(AttendanceRecord).where(*key_filter).execution_options(populate_existing=True)
    ).scalar_one()


def mark_attendance(
    db: Session,
    *,
    student_id: int,
    class_name: str,
    status: str,
    attendance_date: date | None = None,
    prayer: str | None = None,
    reason: str | None = None,
    marked_by: int | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> AttendanceRecord:
    """Mark one student; re-marking the same (student, date, prayer) updates in place."""
    values = _prepare_record(
        db,
        {
            'student_id': student_id,
            'class_name': class_name,
            'status': status,
            'attendance_date': attendance_date,
            'prayer': prayer,
            'reason': reason,
            'marked_by': marked_by,
        },
        time_provider,
    )
    with storage_guard(db, 'mark_attendance'):
        row = _write_record(db, values)
        db.commit()
    logger.info(
        'attendance_marked student_id=%s date=%s prayer=%s status=%s',
        values['student_id'],
        values['attendance_date'],
        values['prayer'] or '-',
        values['status'],
    )
    return row


def mark_bulk(
    db: Session,
    records: list[dict],
    *,
    marked_by: int | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> list[AttendanceRecord]:
    if not records:
        raise ValidationError('Records array is required')
    prepared = [
        _prepare_record(db, {**record, 'marked_by': record.get('marked_by') or marked_by}, time_provider)
        for record in records
    ]
    with storage_guard(db, 'mark_attendance_bulk'):
        rows = [_write_record(db, values) for values in prepared]
        db.commit()
    logger.info('attendance_bulk_marked rows=%s', len(rows))
    return rows


def list_attendance(
    db: Session,
    *,
    class_name: str | None = None,
    attendance_date: date | None = None,
    prayer: str | None = None,
    student_id: int | None = None,
) -> list[AttendanceRecord]:
    stmt = select(AttendanceRecord)
    if class_name:
        stmt = stmt.where(AttendanceRecord.class_name == class_name)
    if attendance_date:
        stmt = stmt.where(AttendanceRecord.attendance_date == attendance_date)
    if prayer:
        stmt = stmt.where(AttendanceRecord.prayer == _normalize_prayer(prayer))
    if student_id:
        stmt = stmt.where(AttendanceRecord.student_id == int(student_id))
    with storage_guard(db, 'list_attendance'):
        return list(db.scalars(stmt.order_by(AttendanceRecord.attendance_date.desc(), AttendanceRecord.id.asc())).all())


def list_by_date_range(
    db: Session,
    *,
    class_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    prayer: str | None = None,
) -> list[AttendanceRecord]:
    if start_date and end_date and start_date > end_date:
        raise ValidationError('start_date must not be after end_date')
    stmt = select(AttendanceRecord)
    if class_name:
        stmt = stmt.where(AttendanceRecord.class_name == class_name)
    if start_date:
        stmt = stmt.where(AttendanceRecord.attendance_date >= start_date)
    if end_date:
        stmt = stmt.where(AttendanceRecord.attendance_date <= end_date)
    if prayer:
        stmt = stmt.where(AttendanceRecord.prayer == _normalize_prayer(prayer))
    with storage_guard(db, 'list_attendance_range'):
        return list(db.scalars(stmt.order_by(AttendanceRecord.attendance_date.asc(), AttendanceRecord.id.asc())).all())


def list_archive(
    db: Session,
    *,
    class_name: str | None = None,
    original_month: str | None = None,
) -> list[AttendanceArchive]:
    stmt = select(AttendanceArchive)
    if class_name:
        stmt = stmt.where(AttendanceArchive.class_name == class_name)
    if original_month:
        if not _MONTH_RE.match(original_month):
            raise ValidationError('original_month must look like YYYY-MM')
        stmt = stmt.where(AttendanceArchive.original_month == original_month)
    with storage_guard(db, 'list_attendance_archive'):
        return list(db.scalars(stmt.order_by(AttendanceArchive.attendance_date.asc(), AttendanceArchive.id.asc())).all())


def attendance_summary(
    db: Session,
    *,
    class_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    """Per-student status counts with sheet status, plus a per-prayer breakdown."""
    student_stmt = select(Student).order_by(Student.class_name.asc(), Student.roll_number.asc())
    if class_name:
        student_stmt = student_stmt.where(Student.class_name == class_name)
    with storage_guard(db, 'attendance_summary'):
        students = list(db.scalars(student_stmt).all())
    records = list_by_date_range(db, class_name=class_name, start_date=start_date, end_date=end_date)

    def _empty_counts() -> dict:
        return {status.lower(): 0 for status in VALID_STATUSES}

    per_student = {
        student.id: {
            'student_id': student.id,
            'name': student.name,
            'roll_number': student.roll_number,
            'class': student.class_name,
            **_empty_counts(),
        }
        for student in students
    }
    per_prayer = {prayer: _empty_counts() for prayer in PRAYERS}

    for record in records:
        key = record.status.lower()
        entry = per_student.get(record.student_id)
        if entry is not None and key in entry:
            entry[key] += 1
        if record.prayer in per_prayer and key in per_prayer[record.prayer]:
            per_prayer[record.prayer][key] += 1

    rows = []
    for entry in per_student.values():
        total = sum(entry[status.lower()] for status in ABSENCE_STATUSES)
        entry['total_absences'] = total
        entry['sheet_status'] = sheet_status(total)
        rows.append(entry)
    return {'students': rows, 'prayers': per_prayer}
