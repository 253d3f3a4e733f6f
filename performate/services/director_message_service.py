from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.models import DirectorMessage


logger = logging.getLogger(__name__)


def serialize_message(row: DirectorMessage) -> dict:
    return {
        'id': row.id,
        'title': row.title,
        'message': row.message,
        'created_at': row.created_at.isoformat() if row.created_at else None,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


def list_messages(db: Session) -> list[DirectorMessage]:
    """Newest first; the dashboard shows the head of this list."""
    with storage_guard(db, 'list_director_messages'):
        return list(
            db.scalars(
                select(DirectorMessage).order_by(DirectorMessage.created_at.desc(), DirectorMessage.id.desc())
            ).all()
        )


def create_message(db: Session, title: str, message: str) -> DirectorMessage:
    clean_title = (title or '').strip()
    clean_message = (message or '').strip()
    if not clean_title:
        raise ValidationError('Title is required')
    if not clean_message:
        raise ValidationError('Message is required')
    row = DirectorMessage(title=clean_title, message=clean_message)
    with storage_guard(db, 'create_director_message'):
        db.add(row)
        db.commit()
        db.refresh(row)
    logger.info('director_message_created id=%s', row.id)
    return row


def delete_message(db: Session, message_id: int) -> None:
    with storage_guard(db, 'get_director_message'):
        row = db.get(DirectorMessage, int(message_id))
    if row is None:
        raise ReferentialError('Director message not found')
    with storage_guard(db, 'delete_director_message'):
        db.delete(row)
        db.commit()
    logger.info('director_message_deleted id=%s', message_id)
