from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.models import ClassReason, PerformanceReason, StarReason, TallyCategory


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CatalogTable:
    model: type
    value_column: str


_CATALOGS = {
    TallyCategory.CLASS: _CatalogTable(ClassReason, 'tally'),
    TallyCategory.PERFORMANCE: _CatalogTable(PerformanceReason, 'tally'),
    TallyCategory.STAR: _CatalogTable(StarReason, 'stars'),
}


@dataclass(frozen=True)
class ResolvedReason:
    id: int
    label: str
    value: int


def coerce_category(category) -> TallyCategory:
    try:
        return TallyCategory(str(getattr(category, 'value', category) or '').strip().lower())
    except ValueError as exc:
        raise ValidationError(f'Unknown reason category: {category}') from exc


def clamp_value(raw) -> int:
    """Point values below 1, blank or unparseable all floor to 1."""
    if raw is None or isinstance(raw, bool):
        return 1
    try:
        value = int(float(str(raw).strip()))
    except (TypeError, ValueError):
        return 1
    return max(1, value)


def value_column_for(category) -> str:
    return _CATALOGS[coerce_category(category)].value_column


def serialize_reason(row, category) -> dict:
    column = value_column_for(category)
    return {
        'id': row.id,
        'reason': row.reason,
        column: int(getattr(row, column)),
        'created_at': row.created_at.isoformat() if row.created_at else None,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


class ReasonCatalog:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _table(self, category) -> tuple[TallyCategory, _CatalogTable]:
        clean = coerce_category(category)
        return clean, _CATALOGS[clean]

    def list(self, category) -> list:
        _, table = self._table(category)
        with storage_guard(self.db, 'list_reasons'):
            return list(self.db.scalars(select(table.model).order_by(table.model.id.asc())).all())

    def get(self, category, reason_id: int):
        clean, table = self._table(category)
        with storage_guard(self.db, 'get_reason'):
            row = self.db.get(table.model, int(reason_id))
        if row is None:
            raise ReferentialError(f'{clean.value.capitalize()} reason not found')
        return row

    def resolve(self, category, reason_id: int) -> ResolvedReason:
        _, table = self._table(category)
        row = self.get(category, reason_id)
        return ResolvedReason(id=row.id, label=row.reason, value=clamp_value(getattr(row, table.value_column)))

    def create(self, category, label: str, value=None):
        clean, table = self._table(category)
        clean_label = _clean_label(label)
        row = table.model(reason=clean_label, **{table.value_column: clamp_value(value)})
        with storage_guard(self.db, 'create_reason'):
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        logger.info('reason_created category=%s id=%s', clean.value, row.id)
        return row

    def update(self, category, reason_id: int, label: str | None = None, value=None):
        clean, table = self._table(category)
        row = self.get(clean, reason_id)
        if label is not None:
            row.reason = _clean_label(label)
        if value is not None:
            setattr(row, table.value_column, clamp_value(value))
        with storage_guard(self.db, 'update_reason'):
            self.db.commit()
            self.db.refresh(row)
        return row

    def delete(self, category, reason_id: int) -> None:
        clean = coerce_category(category)
        row = self.get(clean, reason_id)
        with storage_guard(self.db, 'delete_reason'):
            self.db.delete(row)
            self.db.commit()
        logger.info('reason_deleted category=%s id=%s', clean.value, reason_id)

    def export_to_delimited_text(self, category, fmt: str = 'csv') -> str:
        _, table = self._table(category)
        items = [(row.reason, int(getattr(row, table.value_column))) for row in self.list(category)]
        if fmt == 'json':
            return json.dumps([{'reason': label, table.value_column: value} for label, value in items], indent=2)
        if fmt != 'csv':
            raise ValidationError(f'Unsupported export format: {fmt}')
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator='\n')
        writer.writerow(['reason', table.value_column])
        writer.writerows(items)
        return buffer.getvalue()

    def import_from_delimited_text(self, category, text: str, fmt: str = 'csv') -> list:
        clean, table = self._table(category)
        if fmt == 'json':
            parsed = _parse_json_rows(text, table.value_column)
        elif fmt == 'csv':
            parsed = _parse_csv_rows(text, table.value_column)
        else:
            raise ValidationError(f'Unsupported import format: {fmt}')

        rows = [table.model(reason=label, **{table.value_column: clamp_value(value)}) for label, value in parsed]
        with storage_guard(self.db, 'import_reasons'):
            self.db.add_all(rows)
            self.db.commit()
            for row in rows:
                self.db.refresh(row)
        logger.info('reasons_imported category=%s rows=%s', clean.value, len(rows))
        return rows


def _clean_label(label: str | None) -> str:
    clean = (label or '').strip()
    if not clean:
        raise ValidationError('Reason is required')
    return clean


def _parse_csv_rows(text: str, value_column: str) -> list[tuple[str, object]]:
    reader = csv.reader(io.StringIO(text or ''))
    header = None
    parsed: list[tuple[str, object]] = []
    for line_no, cells in enumerate(reader, start=1):
        if not any(cell.strip() for cell in cells):
            continue
        if header is None:
            header = [cell.strip().lower() for cell in cells]
            if 'reason' not in header:
                raise ValidationError('CSV header must contain a "reason" column')
            continue
        record = dict(zip(header, cells))
        label = (record.get('reason') or '').strip()
        if not label:
            raise ValidationError(f'Line {line_no}: reason is required')
        parsed.append((label, record.get(value_column)))
    return parsed


def _parse_json_rows(text: str, value_column: str) -> list[tuple[str, object]]:
    try:
        payload = json.loads(text or '[]')
    except json.JSONDecodeError as exc:
        raise ValidationError('Invalid JSON payload') from exc
    if not isinstance(payload, list):
        raise ValidationError('JSON payload must be a list of reasons')
    parsed: list[tuple[str, object]] = []
    for index, item in enumerate(payload, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f'Item {index}: expected an object')
        label = str(item.get('reason') or '').strip()
        if not label:
            raise ValidationError(f'Item {index}: reason is required')
        parsed.append((label, item.get(value_column, item.get('value'))))
    return parsed
