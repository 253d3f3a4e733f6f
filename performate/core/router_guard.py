from __future__ import annotations

import logging
from typing import Callable, TypeVar

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from performate.core.errors import ReferentialError, StorageError, ValidationError
from performate.core.retry import retry_operation
from performate.services.auth_service import validate_session_token


logger = logging.getLogger(__name__)

T = TypeVar('T')


def _resolve_token(request: Request) -> str | None:
    token = request.cookies.get('auth_session')
    if token:
        return token
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith('bearer '):
        return authorization[7:].strip()
    return None


def require_auth_user(request: Request) -> dict:
    token = _resolve_token(request)
    session = validate_session_token(token)
    if not session:
        raise HTTPException(status_code=401, detail='Unauthorized')
    mentor_id = int(session.get('mentor_id') or 0)
    if mentor_id <= 0:
        raise HTTPException(status_code=401, detail='Unauthorized')
    return {
        'mentor_id': mentor_id,
        'email': str(session.get('email') or ''),
        'short_form': str(session.get('short_form') or ''),
        'token': token,
    }


def call_service(db: Session, operation: Callable[[], T], *, retry: bool = False) -> T:
    """Run a service call and translate its errors to HTTP responses.

    With ``retry`` set, storage failures are retried after rolling the session back.
    """
    try:
        if retry:
            return retry_operation(operation, on_retry=lambda _exc: db.rollback())
        return operation()
    except ReferentialError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        logger.warning('storage_unavailable error=%s', exc)
        raise HTTPException(status_code=503, detail='Storage temporarily unavailable') from exc
