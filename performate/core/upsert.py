from __future__ import annotations

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


_INSERT_FACTORIES = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


def upsert_statement(db: Session, model, values: dict, *, conflict_columns: list[str], update_values: dict):
    """Build ``INSERT ... ON CONFLICT (...) DO UPDATE`` for the session's dialect.

    Returns None when the dialect has no native upsert; callers then fall back to a
    locked read-then-write.
    """
    factory = _INSERT_FACTORIES.get(db.get_bind().dialect.name)
    if factory is None:
        return None
    return factory(model).values(**values).on_conflict_do_update(
        index_elements=conflict_columns,
        set_=update_values,
    )
