from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import re
import secrets
import threading
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from performate.config import settings
from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.core.time_provider import TimeProvider, default_time_provider
from performate.models import Mentor


_REVOKED_TOKENS: set[str] = set()
_TOKENS_LOCK = threading.RLock()
_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
logger = logging.getLogger(__name__)


class AuthenticationError(ValidationError):
    """Raised when credentials do not match a mentor account."""


def _normalize_email(email: str | None) -> str:
    return (email or '').strip().lower()


def _mask_email(email: str) -> str:
    local, _, domain = email.partition('@')
    if not domain:
        return '***'
    return f'{local[:1]}***@{domain}'


def _hash_password(password: str) -> str:
    if len(password or '') < 8:
        raise ValidationError('Password must be at least 8 characters')
    salt = secrets.token_hex(16)
    iterations = 120000
    derived = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt.encode('utf-8'), iterations)
    return f'pbkdf2_sha256${iterations}${salt}${derived.hex()}'


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, iter_raw, salt, digest_hex = (password_hash or '').split('$', 3)
        iterations = int(iter_raw)
    except ValueError:
        return False
    if algo != 'pbkdf2_sha256':
        return False
    derived = hashlib.pbkdf2_hmac('sha256', (password or '').encode('utf-8'), salt.encode('utf-8'), iterations).hex()
    return hmac.compare_digest(derived, digest_hex)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    return f'{header_part}.{payload_part}.{_b64url_encode(signature)}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
    except ValueError:
        return None

    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    expected_signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    try:
        provided_signature = _b64url_decode(signature_part)
    except (ValueError, binascii.Error):
        return None
    if not hmac.compare_digest(provided_signature, expected_signature):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, binascii.Error, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    return payload


def serialize_mentor(mentor: Mentor) -> dict:
    return {
        'id': mentor.id,
        'email': mentor.email,
        'full_name': mentor.full_name,
        'short_form': mentor.short_form,
        'created_at': mentor.created_at.isoformat() if mentor.created_at else None,
    }


def _find_mentor_by_email(db: Session, email: str) -> Mentor | None:
    with storage_guard(db, 'find_mentor'):
        return db.execute(select(Mentor).where(func.lower(Mentor.email) == email)).scalar_one_or_none()


def _issue_session_token(mentor: Mentor, *, time_provider: TimeProvider = default_time_provider) -> dict:
    now = time_provider.now()
    expires_at = now + timedelta(days=settings.auth_session_max_age_days)
    token = _encode_jwt(
        {
            'sub': mentor.id,
            'email': mentor.email,
            'short_form': mentor.short_form,
            'iat': int(now.timestamp()),
            'exp': int(expires_at.timestamp()),
        }
    )
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.discard(token)
    return {
        'token': token,
        'mentor': serialize_mentor(mentor),
        'expires_at': expires_at.isoformat(),
    }


def signup(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str,
    short_form: str,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    clean_email = _normalize_email(email)
    if not _EMAIL_RE.match(clean_email):
        raise ValidationError('A valid email is required')
    clean_name = (full_name or '').strip()
    clean_short = (short_form or '').strip()
    if not clean_name:
        raise ValidationError('Full name is required')
    if not clean_short:
        raise ValidationError('Short form is required')
    password_hash = _hash_password(password)
    if _find_mentor_by_email(db, clean_email) is not None:
        raise ValidationError('An account with this email already exists')

    mentor = Mentor(email=clean_email, password_hash=password_hash, full_name=clean_name, short_form=clean_short[:20])
    with storage_guard(db, 'create_mentor'):
        db.add(mentor)
        db.commit()
        db.refresh(mentor)
    logger.info('auth_signup_success email=%s', _mask_email(clean_email))
    return _issue_session_token(mentor, time_provider=time_provider)


def signin(
    db: Session,
    *,
    email: str,
    password: str,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    clean_email = _normalize_email(email)
    mentor = _find_mentor_by_email(db, clean_email)
    if mentor is None or not _verify_password(password, mentor.password_hash):
        logger.warning('auth_signin_failed email=%s', _mask_email(clean_email))
        raise AuthenticationError('Invalid credentials')
    logger.info('auth_signin_success email=%s', _mask_email(clean_email))
    return _issue_session_token(mentor, time_provider=time_provider)


def validate_session_token(token: str | None, *, time_provider: TimeProvider = default_time_provider) -> dict | None:
    if not token:
        return None
    with _TOKENS_LOCK:
        if token in _REVOKED_TOKENS:
            return None

    payload = _decode_jwt(token)
    if not payload:
        return None

    mentor_id = payload.get('sub')
    short_form = payload.get('short_form')
    if mentor_id is None or not short_form:
        return None
    expires = int(payload.get('exp') or 0)
    if expires and expires < int(time_provider.now().timestamp()):
        return None

    return {
        'mentor_id': mentor_id,
        'email': payload.get('email') or '',
        'short_form': short_form,
    }


def clear_session_token(token: str | None) -> None:
    if not token:
        return
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.add(token)


def get_mentor(db: Session, mentor_id: int) -> Mentor:
    with storage_guard(db, 'get_mentor'):
        mentor = db.get(Mentor, int(mentor_id))
    if mentor is None:
        raise ReferentialError('Mentor not found')
    return mentor


def list_mentors(db: Session) -> list[Mentor]:
    with storage_guard(db, 'list_mentors'):
        return list(db.scalars(select(Mentor).order_by(Mentor.full_name.asc(), Mentor.id.asc())).all())


def delete_mentor(db: Session, mentor_id: int) -> None:
    # History rows keep their short form; the mentor reference becomes NULL.
    mentor = get_mentor(db, mentor_id)
    with storage_guard(db, 'delete_mentor'):
        db.delete(mentor)
        db.commit()
    logger.warning('mentor_deleted id=%s', mentor_id)
