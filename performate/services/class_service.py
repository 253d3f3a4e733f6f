from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.models import DEFAULT_CLASS_NAMES, SchoolClass, Student


logger = logging.getLogger(__name__)


def serialize_class(row: SchoolClass) -> dict:
    return {
        'id': row.id,
        'name': row.name,
        'is_active': bool(row.is_active),
        'is_default': row.name in DEFAULT_CLASS_NAMES,
    }


def _clean_name(name: str | None) -> str:
    clean = (name or '').strip()
    if not clean:
        raise ValidationError('Class name is required')
    return clean


def _find_by_name(db: Session, name: str) -> SchoolClass | None:
    with storage_guard(db, 'find_class'):
        return db.execute(select(SchoolClass).where(SchoolClass.name == name)).scalar_one_or_none()


def get_class(db: Session, class_id: int) -> SchoolClass:
    with storage_guard(db, 'get_class'):
        row = db.get(SchoolClass, int(class_id))
    if row is None:
        raise ReferentialError('Class not found')
    return row


def list_classes(db: Session, *, include_inactive: bool = False) -> list[SchoolClass]:
    stmt = select(SchoolClass)
    if not include_inactive:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    with storage_guard(db, 'list_classes'):
        return list(db.scalars(stmt.order_by(SchoolClass.name.asc())).all())


def create_class(db: Session, name: str) -> SchoolClass:
    clean_name = _clean_name(name)
    existing = _find_by_name(db, clean_name)
    if existing is not None:
        if existing.is_active:
            raise ValidationError(f'Class {clean_name} already exists')
        # Re-creating a soft-deleted class brings it back.
        existing.is_active = True
        with storage_guard(db, 'reactivate_class'):
            db.commit()
            db.refresh(existing)
        return existing

    row = SchoolClass(name=clean_name, is_active=True)
    with storage_guard(db, 'create_class'):
        db.add(row)
        db.commit()
        db.refresh(row)
    logger.info('class_created name=%s', clean_name)
    return row


def update_class(db: Session, class_id: int, *, name: str | None = None, is_active: bool | None = None) -> SchoolClass:
    row = get_class(db, class_id)
    if name is not None:
        clean_name = _clean_name(name)
        if clean_name != row.name:
            if row.name in DEFAULT_CLASS_NAMES:
                raise ValidationError('Default classes cannot be renamed')
            if _find_by_name(db, clean_name) is not None:
                raise ValidationError(f'Class {clean_name} already exists')
            row.name = clean_name
    if is_active is not None:
        row.is_active = bool(is_active)
    with storage_guard(db, 'update_class'):
        db.commit()
        db.refresh(row)
    return row


def delete_class(db: Session, class_id: int) -> dict:
    """Default classes are protected; classes still holding students are only deactivated."""
    row = get_class(db, class_id)
    if row.name in DEFAULT_CLASS_NAMES:
        raise ValidationError('Default classes cannot be deleted')
    name = row.name
    with storage_guard(db, 'delete_class'):
        in_use = db.execute(select(Student.id).where(Student.class_name == name).limit(1)).first() is not None
        if in_use:
            row.is_active = False
        else:
            db.delete(row)
        db.commit()
    mode = 'soft' if in_use else 'hard'
    logger.info('class_deleted name=%s mode=%s', name, mode)
    return {'id': int(class_id), 'name': name, 'mode': mode}


def seed_default_classes(db: Session) -> int:
    with storage_guard(db, 'seed_default_classes'):
        existing = set(db.scalars(select(SchoolClass.name)).all())
        missing = [name for name in DEFAULT_CLASS_NAMES if name not in existing]
        if missing:
            db.add_all([SchoolClass(name=name, is_active=True) for name in missing])
        db.commit()
    if missing:
        logger.info('default_classes_seeded created=%s', len(missing))
    return len(missing)
