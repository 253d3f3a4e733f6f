from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from performate.core.errors import PartialFailureError, StorageError


logger = logging.getLogger(__name__)


@contextmanager
def storage_guard(db: Session, action: str, *, steps: list[str] | None = None) -> Iterator[None]:
    """Translate SQLAlchemy failures into StorageError after rolling back.

    ``steps`` names the parts of a compound write already flushed; if the rollback
    itself fails they are reported on the PartialFailureError.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception('storage_error action=%s', action)
        try:
            db.rollback()
        except SQLAlchemyError as rollback_exc:
            logger.exception('storage_rollback_failed action=%s', action)
            raise PartialFailureError(f'{action} partially applied', completed_steps=steps) from rollback_exc
        raise StorageError(f'{action} failed') from exc


def commit_or_raise(db: Session, action: str) -> None:
    with storage_guard(db, action):
        db.commit()
