import csv
import io
import tempfile
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from performate.core.errors import ReferentialError, ValidationError
from performate.db import Base
from performate.models import DEFAULT_CLASS_NAMES, AttendanceRecord, CounterKind, SchoolClass, Student, TallyHistory
from performate.services import class_service, morning_bliss_service, report_service, student_service
from performate.services.accounting_service import AccountingService
from performate.services.attendance_service import mark_attendance


class RosterServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_roster_services.db'
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

    def tearDown(self):
        self.db.close()

    def _student(self, name='Aarav', roll='1', class_name='S2B'):
        return student_service.create_student(self.db, name=name, roll_number=roll, class_name=class_name)

    def test_roll_number_is_unique_within_class_only(self):
        self._student()
        self._student(name='Zayan', roll='1', class_name='C2A')
        with self.assertRaises(ValidationError):
            self._student(name='Other', roll='1', class_name='S2B')

    def test_create_requires_fields(self):
        with self.assertRaises(ValidationError):
            student_service.create_student(self.db, name=' ', roll_number='1', class_name='S2B')
        with self.assertRaises(ValidationError):
            student_service.create_student(self.db, name='A', roll_number='1', class_name='')

    def test_update_checks_roll_conflicts(self):
        first = self._student()
        second = self._student(name='Diya', roll='2')

        with self.assertRaises(ValidationError):
            student_service.update_student(self.db, second.id, roll_number='1')

        moved = student_service.update_student(self.db, first.id, class_name='S2A', name='Aarav K')
        self.assertEqual((moved.class_name, moved.name, moved.roll_number), ('S2A', 'Aarav K', '1'))
        with self.assertRaises(ReferentialError):
            student_service.update_student(self.db, 999, name='Nobody')

    def test_delete_student_removes_dependent_rows(self):
        student = self._student()
        AccountingService(self.db).apply_tally(student.id, None, None, 'AB', 'class', points=2)
        mark_attendance(self.db, student_id=student.id, class_name='S2B', status='Absent', attendance_date=date(2026, 3, 1))

        student_service.delete_student(self.db, student.id)

        self.assertEqual(self.db.scalars(select(TallyHistory)).all(), [])
        self.assertEqual(self.db.scalars(select(AttendanceRecord)).all(), [])
        with self.assertRaises(ReferentialError):
            student_service.delete_student(self.db, student.id)

    def test_list_with_stats_reports_fines(self):
        student = self._student()
        self._student(name='Diya', roll='2')
        accounting = AccountingService(self.db)
        accounting.apply_tally(student.id, None, None, 'AB', 'class', points=5)
        accounting.apply_tally(student.id, None, None, 'AB', 'star', points=1)

        rows = student_service.list_with_stats(self.db, 'S2B')

        self.assertEqual([row['name'] for row in rows], ['Aarav', 'Diya'])
        self.assertEqual(rows[0]['net_tallies'], 3)
        self.assertEqual(rows[0]['fine_amount'], 30)
        self.assertEqual(rows[1]['tallies'], 0)

    def test_list_counter_rows_only_includes_students_with_counters(self):
        student = self._student()
        self._student(name='Diya', roll='2')
        AccountingService(self.db).apply_tally(student.id, None, None, 'AB', 'performance', points=2)

        rows = student_service.list_counter_rows(self.db, CounterKind.OTHER_TALLY, 'S2B')

        self.assertEqual(len(rows), 1)
        self.assertEqual((rows[0]['name'], rows[0]['count'], rows[0]['fine_amount']), ('Aarav', 2, '20'))

    def test_list_counter_rows_for_one_student(self):
        student = self._student()
        other = self._student(name='Diya', roll='2')
        accounting = AccountingService(self.db)
        accounting.apply_tally(student.id, None, None, 'AB', 'class', points=2)
        accounting.apply_tally(other.id, None, None, 'AB', 'class', points=5)

        rows = student_service.list_counter_rows(self.db, CounterKind.TALLY, student_id=student.id)

        self.assertEqual([(row['student_id'], row['count']) for row in rows], [(student.id, 2)])
        self.assertEqual(student_service.list_counter_rows(self.db, CounterKind.STAR, student_id=student.id), [])
        self.assertEqual(student_service.list_counter_rows(self.db, CounterKind.TALLY, 'C1A', student.id), [])
        with self.assertRaises(ReferentialError):
            student_service.list_counter_rows(self.db, CounterKind.TALLY, student_id=999)

    def test_seed_default_classes_is_idempotent(self):
        self.assertEqual(class_service.seed_default_classes(self.db), len(DEFAULT_CLASS_NAMES))
        self.assertEqual(class_service.seed_default_classes(self.db), 0)
        names = [row.name for row in class_service.list_classes(self.db)]
        self.assertEqual(sorted(names), sorted(DEFAULT_CLASS_NAMES))

    def test_default_classes_cannot_be_deleted(self):
        class_service.seed_default_classes(self.db)
        default = self.db.execute(select(SchoolClass).where(SchoolClass.name == 'S1A')).scalar_one()
        with self.assertRaises(ValidationError):
            class_service.delete_class(self.db, default.id)

    def test_class_delete_is_soft_when_students_reference_it(self):
        used = class_service.create_class(self.db, 'Hifz')
        unused = class_service.create_class(self.db, 'Tahfeez')
        self._student(class_name='Hifz')

        self.assertEqual(class_service.delete_class(self.db, used.id)['mode'], 'soft')
        self.assertEqual(class_service.delete_class(self.db, unused.id)['mode'], 'hard')

        self.assertEqual([row.name for row in class_service.list_classes(self.db)], [])
        self.assertEqual([row.name for row in class_service.list_classes(self.db, include_inactive=True)], ['Hifz'])
        with self.assertRaises(ReferentialError):
            class_service.get_class(self.db, unused.id)

    def test_class_names_are_unique_and_recreate_reactivates(self):
        row = class_service.create_class(self.db, 'Hifz')
        with self.assertRaises(ValidationError):
            class_service.create_class(self.db, 'Hifz')

        class_service.update_class(self.db, row.id, is_active=False)
        revived = class_service.create_class(self.db, 'Hifz')
        self.assertEqual(revived.id, row.id)
        self.assertTrue(revived.is_active)

    def test_morning_bliss_toppers_and_winner(self):
        student = self._student()
        other = self._student(name='Diya', roll='2')
        accounting = AccountingService(self.db)
        low = accounting.record_morning_bliss(student.id, None, 'Patience', 9.0, 'Evaluator', entry_date=date(2026, 3, 1))
        high = accounting.record_morning_bliss(other.id, None, 'Patience', 10, 'Evaluator', entry_date=date(2026, 3, 1))
        mid = accounting.record_morning_bliss(student.id, None, 'Honesty', 9.5, 'Evaluator', entry_date=date(2026, 3, 2))

        entries = morning_bliss_service.list_entries(self.db, class_name='S2B')
        self.assertEqual(entries[0].id, mid.id)
        toppers = morning_bliss_service.list_toppers(self.db, class_name='S2B')
        self.assertEqual([row.id for row in toppers], [high.id, mid.id])
        self.assertEqual(len(morning_bliss_service.list_entries(self.db, entry_date=date(2026, 3, 1))), 2)

        morning_bliss_service.set_daily_winner(self.db, low.id, True)
        winner = morning_bliss_service.set_daily_winner(self.db, high.id, True)
        self.assertTrue(winner.is_daily_winner)
        self.assertTrue(morning_bliss_service.serialize_entry(low)['is_daily_winner'])
        with self.assertRaises(ReferentialError):
            morning_bliss_service.set_daily_winner(self.db, 999)

    def test_report_csv_exports(self):
        student = self._student()
        accounting = AccountingService(self.db)
        accounting.apply_tally(student.id, None, None, 'AB', 'class', points=2, reason_text='Late')
        accounting.record_morning_bliss(student.id, None, 'Patience', 10, 'Evaluator', entry_date=date(2026, 3, 1))
        for day in range(1, 5):
            mark_attendance(self.db, student_id=student.id, class_name='S2B', status='Absent', attendance_date=date(2026, 3, day))

        students = list(csv.reader(io.StringIO(report_service.students_csv(self.db, 'S2B'))))
        self.assertEqual(students[0], report_service.STUDENT_COLUMNS)
        self.assertEqual(students[1], ['Aarav', '1', 'S2B', '2', '3', '0', '0', '0', '0'])

        history = list(csv.reader(io.StringIO(report_service.history_csv(self.db, class_name='S2B'))))
        self.assertEqual(history[0], report_service.HISTORY_COLUMNS)
        self.assertEqual(sorted(row[5] for row in history[1:]), ['-6', '2'])

        attendance = list(csv.reader(io.StringIO(report_service.attendance_csv(self.db, class_name='S2B'))))
        self.assertEqual(attendance[1], ['Aarav', '1', '0', '4', '0', '0', '0', 'Yellow Sheet'])

        bliss = list(csv.reader(io.StringIO(report_service.morning_bliss_csv(self.db, class_name='S2B'))))
        self.assertEqual(bliss[1], ['Aarav', 'S2B', '2026-03-01', 'Patience', '10.0', '3', 'Yes', 'No'])

    def test_report_pdf_renders(self):
        for index in range(60):
            self._student(name=f'Student {index}', roll=str(index))

        pdf = report_service.students_pdf(self.db, 'S2B')

        self.assertTrue(pdf.startswith(b'%PDF'))


if __name__ == '__main__':
    unittest.main()
