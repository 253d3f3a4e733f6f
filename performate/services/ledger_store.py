from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator

from sqlalchemy import String, cast, delete, func, select
from sqlalchemy.orm import Session

from performate.config import settings
from performate.core.errors import ValidationError
from performate.core.storage import commit_or_raise, storage_guard
from performate.core.upsert import upsert_statement
from performate.models import CounterKind, OtherTally, Star, StarSource, Tally, TallyCategory, TallyHistory


logger = logging.getLogger(__name__)

_COUNTER_MODELS = {
    CounterKind.TALLY: Tally,
    CounterKind.OTHER_TALLY: OtherTally,
    CounterKind.STAR: Star,
}
_FINED_KINDS = (CounterKind.TALLY, CounterKind.OTHER_TALLY)


@dataclass(frozen=True)
class CounterSnapshot:
    student_id: int
    count: int
    fine_amount: Decimal | None
    added_by: int | None
    source: str | None = None


def fine_for(count: int) -> int:
    return int(count) * settings.fine_per_tally


def _coerce_kind(category) -> CounterKind:
    try:
        return CounterKind(getattr(category, 'value', category))
    except ValueError as exc:
        raise ValidationError(f'Unknown counter category: {category}') from exc


class HistoryListing:
    """Newest-first history for one student.

    Rows are fetched lazily in pages; every iteration runs a fresh query.
    """

    def __init__(self, db: Session, student_id: int, page_size: int) -> None:
        self._db = db
        self.student_id = int(student_id)
        self.page_size = max(1, int(page_size))

    def __iter__(self) -> Iterator[TallyHistory]:
        stmt = (
            select(TallyHistory)
            .where(TallyHistory.student_id == self.student_id)
            .order_by(TallyHistory.created_at.desc(), TallyHistory.id.desc())
            .execution_options(yield_per=self.page_size)
        )
        with storage_guard(self._db, 'list_history'):
            for row in self._db.scalars(stmt):
                yield row


class LedgerStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_counter(self, category, student_id: int) -> CounterSnapshot | None:
        kind = _coerce_kind(category)
        model = _COUNTER_MODELS[kind]
        with storage_guard(self.db, f'get_counter:{kind.value}'):
            row = self.db.execute(
                select(model).where(model.student_id == int(student_id)).execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if row is None:
            return None
        return self._snapshot(kind, row)

    def list_counters(self, category, student_ids: list[int] | None = None) -> list[CounterSnapshot]:
        kind = _coerce_kind(category)
        model = _COUNTER_MODELS[kind]
        stmt = select(model).order_by(model.id.asc())
        if student_ids is not None:
            if not student_ids:
                return []
            stmt = stmt.where(model.student_id.in_([int(sid) for sid in student_ids]))
        with storage_guard(self.db, f'list_counters:{kind.value}'):
            rows = self.db.scalars(stmt).all()
        return [self._snapshot(kind, row) for row in rows]

    def counts_for_students(self, student_ids: list[int]) -> dict[int, dict[CounterKind, int]]:
        totals = {int(sid): {kind: 0 for kind in CounterKind} for sid in student_ids}
        if not totals:
            return totals
        for kind, model in _COUNTER_MODELS.items():
            stmt = (
                select(model.student_id, func.coalesce(func.sum(model.count), 0))
                .where(model.student_id.in_(list(totals)))
                .group_by(model.student_id)
            )
            with storage_guard(self.db, f'counts_for_students:{kind.value}'):
                rows = self.db.execute(stmt).all()
            for student_id, total in rows:
                totals[int(student_id)][kind] = int(total or 0)
        return totals

    def upsert_add(
        self,
        category,
        student_id: int,
        delta: int,
        *,
        added_by: int | None = None,
        source: str | None = None,
        commit: bool = True,
    ) -> int:
        """Add ``delta`` to the student's counter, creating the row on first use.

        ``added_by`` and ``source`` are only stamped when the row is created.
        """
        kind = _coerce_kind(category)
        model = _COUNTER_MODELS[kind]
        clean_student_id = int(student_id)
        clean_delta = int(delta)

        insert_values = {
            'student_id': clean_student_id,
            'count': clean_delta,
            'added_by': added_by,
        }
        update_values = {'count': model.count + clean_delta}
        if kind in _FINED_KINDS:
            insert_values['fine_amount'] = str(fine_for(clean_delta))
            update_values['fine_amount'] = cast((model.count + clean_delta) * settings.fine_per_tally, String)
            update_values['updated_at'] = func.now()
        else:
            insert_values['source'] = source or StarSource.MANUAL.value

        with storage_guard(self.db, f'upsert_add:{kind.value}'):
            stmt = upsert_statement(
                self.db,
                model,
                insert_values,
                conflict_columns=['student_id'],
                update_values=update_values,
            )
            if stmt is not None:
                self.db.execute(stmt)
            else:
                self._locked_upsert(model, kind, insert_values, clean_delta)
            new_count = self.db.execute(select(model.count).where(model.student_id == clean_student_id)).scalar_one()
            if commit:
                self.db.commit()

        logger.info('counter_upserted kind=%s student_id=%s delta=%s count=%s', kind.value, clean_student_id, clean_delta, new_count)
        return int(new_count)

    def _locked_upsert(self, model, kind: CounterKind, insert_values: dict, delta: int) -> None:
        row = (
            self.db.execute(select(model).where(model.student_id == insert_values['student_id']).with_for_update())
            .scalar_one_or_none()
        )
        if row is None:
            self.db.add(model(**insert_values))
            self.db.flush()
            return
        row.count = int(row.count or 0) + delta
        if kind in _FINED_KINDS:
            row.fine_amount = str(fine_for(row.count))
        self.db.flush()

    def reset_counters(self, *, commit: bool = True) -> dict[str, int]:
        reset = {}
        with storage_guard(self.db, 'reset_counters'):
            for kind, model in _COUNTER_MODELS.items():
                values = {'count': 0}
                if kind in _FINED_KINDS:
                    values['fine_amount'] = '0'
                result = self.db.execute(model.__table__.update().values(**values))
                reset[kind.value] = int(result.rowcount or 0)
            if commit:
                self.db.commit()
        return reset

    def append_history(
        self,
        *,
        student_id: int,
        class_name: str,
        mentor_id: int | None,
        mentor_short_form: str,
        category,
        reason: str | None,
        signed_delta: int,
        idempotency_key: str | None = None,
        commit: bool = True,
    ) -> TallyHistory:
        clean_category = TallyCategory(getattr(category, 'value', category))
        row = TallyHistory(
            student_id=int(student_id),
            class_name=class_name,
            mentor_id=mentor_id,
            mentor_short_form=mentor_short_form,
            category=clean_category.value,
            reason=reason,
            tally_value=int(signed_delta),
            idempotency_key=idempotency_key,
        )
        with storage_guard(self.db, 'append_history'):
            self.db.add(row)
            self.db.flush()
            if commit:
                self.db.commit()
                self.db.refresh(row)
        return row

    def list_history(self, student_id: int) -> HistoryListing:
        return HistoryListing(self.db, student_id, settings.history_page_size)

    def find_history_by_key(self, idempotency_key: str) -> TallyHistory | None:
        with storage_guard(self.db, 'find_history_by_key'):
            return self.db.execute(
                select(TallyHistory).where(TallyHistory.idempotency_key == idempotency_key)
            ).scalar_one_or_none()

    def purge_history(self, student_id: int | None = None) -> int:
        stmt = delete(TallyHistory)
        if student_id is not None:
            stmt = stmt.where(TallyHistory.student_id == int(student_id))
        with storage_guard(self.db, 'purge_history'):
            result = self.db.execute(stmt)
            self.db.commit()
        purged = int(result.rowcount or 0)
        logger.warning('history_purged student_id=%s rows=%s', student_id, purged)
        return purged

    def commit(self, action: str = 'ledger_commit') -> None:
        commit_or_raise(self.db, action)

    @staticmethod
    def _snapshot(kind: CounterKind, row) -> CounterSnapshot:
        fine = Decimal(str(row.fine_amount or '0')) if kind in _FINED_KINDS else None
        return CounterSnapshot(
            student_id=int(row.student_id),
            count=int(row.count or 0),
            fine_amount=fine,
            added_by=row.added_by,
            source=getattr(row, 'source', None),
        )
