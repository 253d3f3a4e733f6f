import tempfile
import unittest
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from performate.db import Base
from performate.models import CounterKind, Star, Student, Tally, TallyCategory, TallyHistory
from performate.services.ledger_store import LedgerStore


class LedgerStoreTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_ledger_store.db'
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
        first = Student(name='Aarav', roll_number='1', class_name='S1A')
        second = Student(name='Diya', roll_number='2', class_name='S1A')
        self.db.add_all([first, second])
        self.db.commit()
        self.student_id = first.id
        self.other_student_id = second.id
        self.store = LedgerStore(self.db)

    def tearDown(self):
        self.db.close()

    def _history(self, value, reason='r'):
        return self.store.append_history(
            student_id=self.student_id,
            class_name='S1A',
            mentor_id=None,
            mentor_short_form='AB',
            category=TallyCategory.CLASS,
            reason=reason,
            signed_delta=value,
        )

    def test_upsert_add_keeps_single_row_and_recomputes_fine(self):
        self.assertEqual(self.store.upsert_add(CounterKind.TALLY, self.student_id, 2), 2)
        self.assertEqual(self.store.upsert_add(CounterKind.TALLY, self.student_id, 3), 5)

        rows = self.db.scalars(select(Tally).where(Tally.student_id == self.student_id)).all()
        self.assertEqual(len(rows), 1)
        snapshot = self.store.get_counter(CounterKind.TALLY, self.student_id)
        self.assertEqual(snapshot.count, 5)
        self.assertEqual(snapshot.fine_amount, Decimal('50'))

    def test_other_tally_is_independent_of_tally(self):
        self.store.upsert_add(CounterKind.OTHER_TALLY, self.student_id, 4)

        self.assertIsNone(self.store.get_counter(CounterKind.TALLY, self.student_id))
        snapshot = self.store.get_counter('other_tally', self.student_id)
        self.assertEqual(snapshot.count, 4)
        self.assertEqual(snapshot.fine_amount, Decimal('40'))

    def test_star_source_is_stamped_on_creation_only(self):
        self.store.upsert_add(CounterKind.STAR, self.student_id, 1, source='morning_bliss')
        self.store.upsert_add(CounterKind.STAR, self.student_id, 2, source='manual')

        star = self.db.execute(select(Star).where(Star.student_id == self.student_id)).scalar_one()
        self.assertEqual(star.count, 3)
        self.assertEqual(star.source, 'morning_bliss')
        self.assertIsNone(self.store.get_counter(CounterKind.STAR, self.student_id).fine_amount)

    def test_counts_for_students_defaults_missing_counters_to_zero(self):
        self.store.upsert_add(CounterKind.TALLY, self.student_id, 7)
        self.store.upsert_add(CounterKind.STAR, self.other_student_id, 1)

        counts = self.store.counts_for_students([self.student_id, self.other_student_id])

        self.assertEqual(counts[self.student_id][CounterKind.TALLY], 7)
        self.assertEqual(counts[self.student_id][CounterKind.STAR], 0)
        self.assertEqual(counts[self.other_student_id][CounterKind.STAR], 1)
        self.assertEqual(counts[self.other_student_id][CounterKind.OTHER_TALLY], 0)

    def test_list_counters_filters_by_student_ids(self):
        self.store.upsert_add(CounterKind.TALLY, self.student_id, 1)
        self.store.upsert_add(CounterKind.TALLY, self.other_student_id, 2)

        self.assertEqual(len(self.store.list_counters(CounterKind.TALLY)), 2)
        only_first = self.store.list_counters(CounterKind.TALLY, [self.student_id])
        self.assertEqual([row.student_id for row in only_first], [self.student_id])
        self.assertEqual(self.store.list_counters(CounterKind.TALLY, []), [])

    def test_reset_counters_zeroes_every_row(self):
        self.store.upsert_add(CounterKind.TALLY, self.student_id, 3)
        self.store.upsert_add(CounterKind.OTHER_TALLY, self.student_id, 2)
        self.store.upsert_add(CounterKind.STAR, self.student_id, 1)

        reset = self.store.reset_counters()

        self.assertEqual(reset, {'tally': 1, 'other_tally': 1, 'star': 1})
        for kind in CounterKind:
            snapshot = self.store.get_counter(kind, self.student_id)
            self.assertEqual(snapshot.count, 0)
        self.assertEqual(self.store.get_counter(CounterKind.TALLY, self.student_id).fine_amount, Decimal('0'))

    def test_list_history_is_newest_first_and_restartable(self):
        first = self._history(1, 'first')
        second = self._history(2, 'second')
        third = self._history(-2, 'third')

        listing = self.store.list_history(self.student_id)

        self.assertEqual([row.id for row in listing], [third.id, second.id, first.id])
        self.assertEqual([row.reason for row in listing], ['third', 'second', 'first'])

    def test_find_history_by_key(self):
        row = self.store.append_history(
            student_id=self.student_id,
            class_name='S1A',
            mentor_id=None,
            mentor_short_form='AB',
            category='star',
            reason=None,
            signed_delta=-4,
            idempotency_key='key-1',
        )

        self.assertEqual(self.store.find_history_by_key('key-1').id, row.id)
        self.assertIsNone(self.store.find_history_by_key('missing'))

    def test_purge_history_by_student(self):
        self._history(1)
        self.store.append_history(
            student_id=self.other_student_id,
            class_name='S1A',
            mentor_id=None,
            mentor_short_form='AB',
            category=TallyCategory.CLASS,
            reason=None,
            signed_delta=1,
        )

        self.assertEqual(self.store.purge_history(self.student_id), 1)
        remaining = self.db.scalars(select(TallyHistory)).all()
        self.assertEqual([row.student_id for row in remaining], [self.other_student_id])

    def test_deleting_student_cascades_counters_and_history(self):
        self.store.upsert_add(CounterKind.TALLY, self.student_id, 2)
        self._history(2)

        student = self.db.get(Student, self.student_id)
        self.db.delete(student)
        self.db.commit()

        self.assertIsNone(self.store.get_counter(CounterKind.TALLY, self.student_id))
        self.assertEqual(list(self.store.list_history(self.student_id)), [])


if __name__ == '__main__':
    unittest.main()
