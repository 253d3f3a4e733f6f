from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.models import MorningBliss


logger = logging.getLogger(__name__)


def serialize_entry(entry: MorningBliss) -> dict:
    return {
        'id': entry.id,
        'student_id': entry.student_id,
        'student_name': entry.student.name if entry.student is not None else None,
        'class': entry.class_name,
        'topic': entry.topic,
        'score': entry.score,
        'evaluated_by': entry.evaluated_by,
        'evaluator_id': entry.evaluator_id,
        'photo_urls': list(entry.photo_urls or []),
        'date': entry.entry_date.isoformat() if entry.entry_date else None,
        'stars_awarded': entry.stars_awarded,
        'is_topper': bool(entry.is_topper),
        'is_daily_winner': bool(entry.is_daily_winner),
    }


def _check_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and start_date > end_date:
        raise ValidationError('start_date must not be after end_date')


def list_entries(
    db: Session,
    *,
    class_name: str | None = None,
    entry_date: date | None = None,
    student_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[MorningBliss]:
    _check_range(start_date, end_date)
    stmt = select(MorningBliss)
    if class_name:
        stmt = stmt.where(MorningBliss.class_name == class_name)
    if entry_date:
        stmt = stmt.where(MorningBliss.entry_date == entry_date)
    if student_id:
        stmt = stmt.where(MorningBliss.student_id == int(student_id))
    if start_date:
        stmt = stmt.where(MorningBliss.entry_date >= start_date)
    if end_date:
        stmt = stmt.where(MorningBliss.entry_date <= end_date)
    with storage_guard(db, 'list_morning_bliss'):
        return list(db.scalars(stmt.order_by(MorningBliss.entry_date.desc(), MorningBliss.id.desc())).all())


def list_toppers(
    db: Session,
    *,
    class_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[MorningBliss]:
    _check_range(start_date, end_date)
    stmt = select(MorningBliss).where(MorningBliss.is_topper.is_(True))
    if class_name:
        stmt = stmt.where(MorningBliss.class_name == class_name)
    if start_date:
        stmt = stmt.where(MorningBliss.entry_date >= start_date)
    if end_date:
        stmt = stmt.where(MorningBliss.entry_date <= end_date)
    stmt = stmt.order_by(MorningBliss.score.desc(), MorningBliss.entry_date.desc(), MorningBliss.id.asc())
    with storage_guard(db, 'list_toppers'):
        return list(db.scalars(stmt).all())


def set_daily_winner(db: Session, entry_id: int, flag: bool = True) -> MorningBliss:
    # Several winners for the same class and day are allowed.
    with storage_guard(db, 'get_morning_bliss'):
        entry = db.get(MorningBliss, int(entry_id))
    if entry is None:
        raise ReferentialError('Morning Bliss entry not found')
    entry.is_daily_winner = bool(flag)
    with storage_guard(db, 'set_daily_winner'):
        db.commit()
        db.refresh(entry)
    logger.info('morning_bliss_winner_set id=%s flag=%s', entry.id, entry.is_daily_winner)
    return entry
