from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.models import Student
from performate.services.accounting_service import AccountingService
from performate.services.ledger_store import LedgerStore


logger = logging.getLogger(__name__)


def serialize_student(student: Student) -> dict:
    return {
        'id': student.id,
        'name': student.name,
        'roll_number': student.roll_number,
        'class': student.class_name,
        'photo_url': student.photo_url,
        'created_at': student.created_at.isoformat() if student.created_at else None,
    }


def _required(value: str | None, field_name: str) -> str:
    clean = (value or '').strip()
    if not clean:
        raise ValidationError(f'{field_name} is required')
    return clean


def _roll_taken(db: Session, roll_number: str, class_name: str, *, exclude_id: int | None = None) -> bool:
    stmt = select(Student.id).where(Student.roll_number == roll_number, Student.class_name == class_name)
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    with storage_guard(db, 'check_roll_number'):
        return db.execute(stmt).first() is not None


def get_student(db: Session, student_id: int) -> Student:
    with storage_guard(db, 'get_student'):
        student = db.get(Student, int(student_id))
    if student is None:
        raise ReferentialError('Student not found')
    return student


def list_students(db: Session, class_name: str | None = None) -> list[Student]:
    stmt = select(Student)
    if class_name:
        stmt = stmt.where(Student.class_name == class_name)
    with storage_guard(db, 'list_students'):
        return list(db.scalars(stmt.order_by(Student.class_name.asc(), Student.roll_number.asc(), Student.id.asc())).all())


def create_student(
    db: Session,
    *,
    name: str,
    roll_number: str,
    class_name: str,
    photo_url: str | None = None,
) -> Student:
    clean_name = _required(name, 'name')
    clean_roll = _required(roll_number, 'roll_number')
    clean_class = _required(class_name, 'class')
    if _roll_taken(db, clean_roll, clean_class):
        raise ValidationError(f'Roll number {clean_roll} already exists in {clean_class}')

    student = Student(name=clean_name, roll_number=clean_roll, class_name=clean_class, photo_url=photo_url or None)
    with storage_guard(db, 'create_student'):
        db.add(student)
        db.commit()
        db.refresh(student)
    logger.info('student_created id=%s class=%s', student.id, student.class_name)
    return student


def update_student(
    db: Session,
    student_id: int,
    *,
    name: str | None = None,
    roll_number: str | None = None,
    class_name: str | None = None,
    photo_url: str | None = None,
) -> Student:
    student = get_student(db, student_id)
    next_roll = _required(roll_number, 'roll_number') if roll_number is not None else student.roll_number
    next_class = _required(class_name, 'class') if class_name is not None else student.class_name
    if (next_roll, next_class) != (student.roll_number, student.class_name):
        if _roll_taken(db, next_roll, next_class, exclude_id=student.id):
            raise ValidationError(f'Roll number {next_roll} already exists in {next_class}')

    if name is not None:
        student.name = _required(name, 'name')
    student.roll_number = next_roll
    student.class_name = next_class
    if photo_url is not None:
        student.photo_url = photo_url or None
    with storage_guard(db, 'update_student'):
        db.commit()
        db.refresh(student)
    return student


def delete_student(db: Session, student_id: int) -> None:
    """Remove the student; counters, attendance, Morning Bliss and history go with it."""
    student = get_student(db, student_id)
    with storage_guard(db, 'delete_student'):
        db.delete(student)
        db.commit()
    logger.warning('student_deleted id=%s', student_id)


def list_with_stats(db: Session, class_name: str | None = None) -> list[dict]:
    students = list_students(db, class_name)
    fines = AccountingService(db).net_fines([student.id for student in students])
    rows = []
    for student in students:
        payload = serialize_student(student)
        payload.update(fines[student.id].as_dict())
        rows.append(payload)
    return rows


def _counter_row(student: Student, snapshot) -> dict:
    return {
        'student_id': student.id,
        'name': student.name,
        'roll_number': student.roll_number,
        'class': student.class_name,
        'count': snapshot.count,
        'fine_amount': str(snapshot.fine_amount) if snapshot.fine_amount is not None else None,
        'added_by': snapshot.added_by,
        'source': snapshot.source,
    }


def list_counter_rows(db: Session, kind, class_name: str | None = None, student_id: int | None = None) -> list[dict]:
    """Students that hold a counter of ``kind``, with the counter values.

    With ``student_id`` only that student's counter is returned, or an empty list when
    the student has none yet.
    """
    if student_id is not None:
        student = get_student(db, student_id)
        if class_name and student.class_name != class_name:
            return []
        snapshot = LedgerStore(db).get_counter(kind, student.id)
        return [_counter_row(student, snapshot)] if snapshot is not None else []

    students = {student.id: student for student in list_students(db, class_name)}
    snapshots = LedgerStore(db).list_counters(kind, list(students))
    return [_counter_row(students[snapshot.student_id], snapshot) for snapshot in snapshots]
