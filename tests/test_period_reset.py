import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from freezegun import freeze_time
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from performate.core.time_provider import TimeProvider
from performate.db import Base
from performate.models import AttendanceArchive, AttendanceRecord, CounterKind, MorningBliss, Student, TallyHistory
from performate.services.accounting_service import AccountingService
from performate.services.period_reset_service import PeriodResetService


class FixedTimeProvider(TimeProvider):
    def __init__(self, value: datetime) -> None:
        self.value = value

    def now(self) -> datetime:
        return self.value


class PeriodResetTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_period_reset.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        for table in reversed(Base.metadata.sorted_tables):
            self.db.execute(table.delete())
        self.db.commit()

        student = Student(name='Aarav', roll_number='3', class_name='C1A')
        self.db.add(student)
        self.db.commit()
        self.student_id = student.id

        self.db.add_all(
            [
                AttendanceRecord(
                    student_id=student.id,
                    class_name='C1A',
                    attendance_date=date(2026, 3, 10),
                    status='Absent',
                    prayer='Fajr',
                    reason='Sick',
                ),
                AttendanceRecord(
                    student_id=student.id,
                    class_name='C1A',
                    attendance_date=date(2026, 3, 11),
                    status='Present',
                    prayer='',
                ),
                AttendanceRecord(student_id=student.id, class_name='C1A', attendance_date=None, status='Present'),
            ]
        )
        self.db.commit()

        accounting = AccountingService(self.db)
        accounting.apply_tally(student.id, 'C1A', None, 'AB', 'class', points=4)
        accounting.apply_tally(student.id, 'C1A', None, 'AB', 'performance', points=2)
        accounting.apply_tally(student.id, 'C1A', None, 'AB', 'star', points=1)
        accounting.record_morning_bliss(student.id, 'C1A', 'Patience', 9.6, 'Evaluator', entry_date=date(2026, 3, 12))
        self.ledger = accounting.ledger

    def tearDown(self):
        self.db.close()

    def _service(self, when: datetime) -> PeriodResetService:
        return PeriodResetService(self.db, time_provider=FixedTimeProvider(when))

    def test_reset_monthly_archives_dated_rows_and_zeroes_counters(self):
        report = self._service(datetime(2026, 3, 31, 18, 0, tzinfo=ZoneInfo('Asia/Kolkata'))).reset_monthly()

        self.assertEqual(report.original_month, '2026-03')
        self.assertEqual(report.archived, 2)
        self.assertEqual(report.dropped_without_date, 1)
        self.assertEqual(report.deleted_attendance, 3)
        self.assertEqual(report.counters_reset, {'tally': 1, 'other_tally': 1, 'star': 1})

        self.assertEqual(self.db.scalars(select(AttendanceRecord)).all(), [])
        archived = self.db.scalars(select(AttendanceArchive).order_by(AttendanceArchive.attendance_date.asc())).all()
        self.assertEqual([row.original_month for row in archived], ['2026-03', '2026-03'])
        self.assertEqual(archived[0].prayer, 'Fajr')
        self.assertEqual(archived[0].reason, 'Sick')
        self.assertEqual(archived[1].prayer, '')

        for kind in CounterKind:
            self.assertEqual(self.ledger.get_counter(kind, self.student_id).count, 0)

    def test_history_and_morning_bliss_survive_monthly_reset(self):
        history_before = len(self.db.scalars(select(TallyHistory)).all())

        self._service(datetime(2026, 3, 31, 18, 0)).reset_monthly()

        self.assertEqual(len(self.db.scalars(select(TallyHistory)).all()), history_before)
        self.assertEqual(len(self.db.scalars(select(MorningBliss)).all()), 1)

    def test_reset_classes_leaves_attendance(self):
        report = self._service(datetime(2026, 3, 31)).reset_classes()

        self.assertIsNone(report.original_month)
        self.assertEqual(report.counters_reset['tally'], 1)
        self.assertEqual(len(self.db.scalars(select(AttendanceRecord)).all()), 3)
        self.assertEqual(self.ledger.get_counter(CounterKind.TALLY, self.student_id).count, 0)

    def test_reset_attendance_leaves_counters(self):
        report = self._service(datetime(2026, 4, 1, 9, 0)).reset_attendance()

        self.assertEqual(report.original_month, '2026-04')
        self.assertEqual(report.archived, 2)
        self.assertEqual(self.ledger.get_counter(CounterKind.TALLY, self.student_id).count, 4)

    def test_reset_morning_bliss_deletes_entries_only(self):
        report = self._service(datetime(2026, 3, 31)).reset_morning_bliss()

        self.assertEqual(report.morning_bliss_deleted, 1)
        self.assertEqual(self.db.scalars(select(MorningBliss)).all(), [])
        self.assertEqual(self.ledger.get_counter(CounterKind.STAR, self.student_id).count, 3)

    def test_month_tag_follows_app_timezone(self):
        # 20:00 UTC on 30 April is already 1 May in Asia/Kolkata.
        with freeze_time('2026-04-30 20:00:00'):
            report = PeriodResetService(self.db).reset_attendance()

        self.assertEqual(report.original_month, '2026-05')

    def test_second_reset_archives_nothing(self):
        service = self._service(datetime(2026, 3, 31))
        service.reset_monthly()
        report = service.reset_monthly()

        self.assertEqual(report.archived, 0)
        self.assertEqual(report.deleted_attendance, 0)
        self.assertEqual(len(self.db.scalars(select(AttendanceArchive)).all()), 2)


if __name__ == '__main__':
    unittest.main()
