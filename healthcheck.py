import os
import sys

import httpx
from sqlalchemy import inspect, text

from performate.config import settings
from performate.db import Base, SessionLocal, engine
from performate.models import Mentor, SchoolClass
from performate.services.auth_service import clear_session_token, validate_session_token, _encode_jwt


GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_schema_present():
    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        raise RuntimeError(f'Missing tables: {missing} (run bootstrap.py or alembic upgrade head)')
    return f'tables={len(existing)}'


def check_required_env():
    if not settings.auth_secret.strip() or settings.auth_secret == 'change-me':
        raise RuntimeError('AUTH_SECRET is unset or still the default')
    if settings.fine_per_tally <= 0:
        raise RuntimeError('FINE_PER_TALLY must be positive')
    return f'env={settings.app_env}'


def check_default_classes_seeded():
    db = SessionLocal()
    try:
        count = db.query(SchoolClass).count()
        if count == 0:
            raise RuntimeError('No classes found (run bootstrap.py)')
        return f'classes={count} mentors={db.query(Mentor).count()}'
    finally:
        db.close()


def check_session_token_roundtrip():
    token = _encode_jwt({'sub': 0, 'email': 'healthcheck@local', 'short_form': 'HC'})
    if not validate_session_token(token):
        raise RuntimeError('Freshly signed token did not validate')
    clear_session_token(token)
    if validate_session_token(token):
        raise RuntimeError('Revoked token still validates')
    return 'sign/validate/revoke ok'


def check_http_health():
    base_url = os.getenv('HEALTHCHECK_BASE_URL', '').strip()
    if not base_url:
        return 'skipped (HEALTHCHECK_BASE_URL not set)'
    res = httpx.get(f'{base_url.rstrip("/")}/health', timeout=8)
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code} from /health')
    return res.json().get('status', '')


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Schema tables present', check_schema_present),
        ('Required environment variables present', check_required_env),
        ('Default classes seeded', check_default_classes_seeded),
        ('Session token signing and revocation', check_session_token_roundtrip),
        ('HTTP /health reachable', check_http_health),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
