from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from performate.core.storage import storage_guard
from performate.core.time_provider import TimeProvider, default_time_provider
from performate.models import AttendanceArchive, AttendanceRecord, MorningBliss
from performate.services.ledger_store import LedgerStore


logger = logging.getLogger(__name__)


@dataclass
class ResetReport:
    original_month: str | None = None
    archived: int = 0
    dropped_without_date: int = 0
    deleted_attendance: int = 0
    counters_reset: dict[str, int] = field(default_factory=dict)
    morning_bliss_deleted: int = 0

    def as_dict(self) -> dict:
        return {
            'original_month': self.original_month,
            'archived': self.archived,
            'dropped_without_date': self.dropped_without_date,
            'deleted_attendance': self.deleted_attendance,
            'counters_reset': dict(self.counters_reset),
            'morning_bliss_deleted': self.morning_bliss_deleted,
        }


class PeriodResetService:
    """Administrator-triggered monthly rollover jobs. Holds no state between calls."""

    def __init__(
        self,
        db: Session,
        *,
        ledger: LedgerStore | None = None,
        time_provider: TimeProvider = default_time_provider,
    ) -> None:
        self.db = db
        self.ledger = ledger or LedgerStore(db)
        self.time_provider = time_provider

    def reset_classes(self) -> ResetReport:
        # Applies to every class's counters, not a single section.
        report = ResetReport()
        report.counters_reset = self.ledger.reset_counters(commit=True)
        logger.warning('counters_reset scope=all rows=%s', report.counters_reset)
        return report

    def reset_attendance(self) -> ResetReport:
        report = ResetReport()
        with storage_guard(self.db, 'reset_attendance'):
            self._archive_and_clear_attendance(report)
            self.db.commit()
        logger.warning(
            'attendance_reset month=%s archived=%s dropped=%s',
            report.original_month,
            report.archived,
            report.dropped_without_date,
        )
        return report

    def reset_morning_bliss(self) -> ResetReport:
        report = ResetReport()
        with storage_guard(self.db, 'reset_morning_bliss'):
            result = self.db.execute(delete(MorningBliss))
            self.db.commit()
        report.morning_bliss_deleted = int(result.rowcount or 0)
        logger.warning('morning_bliss_reset deleted=%s', report.morning_bliss_deleted)
        return report

    def reset_monthly(self) -> ResetReport:
        """Archive attendance and zero all counters as one transaction."""
        report = ResetReport()
        steps: list[str] = []
        with storage_guard(self.db, 'reset_monthly', steps=steps):
            self._archive_and_clear_attendance(report)
            steps.append('attendance')
            report.counters_reset = self.ledger.reset_counters(commit=False)
            steps.append('counters')
            self.db.commit()
        logger.warning(
            'monthly_reset month=%s archived=%s counters=%s',
            report.original_month,
            report.archived,
            report.counters_reset,
        )
        return report

    def _archive_and_clear_attendance(self, report: ResetReport) -> None:
        month = self.time_provider.year_month()
        report.original_month = month
        live_rows = self.db.scalars(select(AttendanceRecord).order_by(AttendanceRecord.id.asc())).all()
        archive_rows = [
            AttendanceArchive(
                student_id=row.student_id,
                class_name=row.class_name,
                attendance_date=row.attendance_date,
                status=row.status,
                prayer=row.prayer or '',
                reason=row.reason,
                marked_by=row.marked_by,
                original_month=month,
            )
            for row in live_rows
            if row.attendance_date is not None
        ]
        report.archived = len(archive_rows)
        report.dropped_without_date = len(live_rows) - len(archive_rows)
        if archive_rows:
            self.db.add_all(archive_rows)
            self.db.flush()
        result = self.db.execute(delete(AttendanceRecord))
        report.deleted_attendance = int(result.rowcount or 0)
