import json
import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from performate.core.errors import ReferentialError, ValidationError
from performate.db import Base
from performate.models import TallyCategory
from performate.services.reason_catalog import ReasonCatalog, clamp_value


class ClampValueTests(unittest.TestCase):
    def test_values_floor_to_one(self):
        self.assertEqual(clamp_value(None), 1)
        self.assertEqual(clamp_value(''), 1)
        self.assertEqual(clamp_value('abc'), 1)
        self.assertEqual(clamp_value(0), 1)
        self.assertEqual(clamp_value(-5), 1)
        self.assertEqual(clamp_value(True), 1)

    def test_numeric_values_are_truncated(self):
        self.assertEqual(clamp_value(3), 3)
        self.assertEqual(clamp_value('4'), 4)
        self.assertEqual(clamp_value(2.7), 2)
        self.assertEqual(clamp_value(' 5 '), 5)


class ReasonCatalogTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_reason_catalog.db'
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
        self.catalog = ReasonCatalog(self.db)

    def tearDown(self):
        self.db.close()

    def test_create_clamps_value_and_resolves(self):
        row = self.catalog.create('class', '  Late to class ', 0)

        self.assertEqual(row.reason, 'Late to class')
        self.assertEqual(row.tally, 1)
        resolved = self.catalog.resolve(TallyCategory.CLASS, row.id)
        self.assertEqual((resolved.label, resolved.value), ('Late to class', 1))

    def test_star_catalog_uses_stars_column(self):
        row = self.catalog.create('star', 'Helped a classmate', 3)
        self.assertEqual(row.stars, 3)
        self.assertEqual(self.catalog.resolve('star', row.id).value, 3)

    def test_catalogs_are_separate(self):
        row = self.catalog.create('class', 'Late', 2)
        with self.assertRaises(ReferentialError):
            self.catalog.get('performance', row.id)

    def test_blank_label_and_unknown_category_are_rejected(self):
        with self.assertRaises(ValidationError):
            self.catalog.create('class', '   ', 2)
        with self.assertRaises(ValidationError):
            self.catalog.list('bonus')

    def test_update_and_delete(self):
        row = self.catalog.create('performance', 'Uniform', 1)

        updated = self.catalog.update('performance', row.id, label='Uniform not proper', value=-3)
        self.assertEqual(updated.reason, 'Uniform not proper')
        self.assertEqual(updated.tally, 1)

        self.catalog.delete('performance', row.id)
        self.assertEqual(self.catalog.list('performance'), [])
        with self.assertRaises(ReferentialError):
            self.catalog.delete('performance', row.id)

    def test_export_csv(self):
        self.catalog.create('class', 'Late', 2)
        self.catalog.create('class', 'Talking, loudly', 1)

        text = self.catalog.export_to_delimited_text('class', 'csv')

        self.assertEqual(text, 'reason,tally\nLate,2\n"Talking, loudly",1\n')

    def test_export_json(self):
        self.catalog.create('star', 'Helped', 2)

        payload = json.loads(self.catalog.export_to_delimited_text('star', 'json'))

        self.assertEqual(payload, [{'reason': 'Helped', 'stars': 2}])

    def test_import_csv_skips_blank_lines_and_clamps(self):
        text = 'reason,tally\n\nLate,2\nNoisy,0\n"Talking, loudly",abc\n'

        rows = self.catalog.import_from_delimited_text('class', text, 'csv')

        self.assertEqual([(row.reason, row.tally) for row in rows], [('Late', 2), ('Noisy', 1), ('Talking, loudly', 1)])
        self.assertEqual(len(self.catalog.list('class')), 3)

    def test_import_is_all_or_nothing(self):
        text = 'reason,tally\nLate,2\n,3\n'
        with self.assertRaises(ValidationError):
            self.catalog.import_from_delimited_text('class', text, 'csv')
        self.assertEqual(self.catalog.list('class'), [])

        with self.assertRaises(ValidationError):
            self.catalog.import_from_delimited_text('class', 'label,tally\nLate,2\n', 'csv')

    def test_import_json_accepts_value_key(self):
        text = json.dumps([{'reason': 'Helped', 'stars': 2}, {'reason': 'Led prayer', 'value': 3}])

        rows = self.catalog.import_from_delimited_text('star', text, 'json')

        self.assertEqual([(row.reason, row.stars) for row in rows], [('Helped', 2), ('Led prayer', 3)])

    def test_import_rejects_malformed_json(self):
        for text in ('{not json', '{"reason": "x"}', '["x"]'):
            with self.assertRaises(ValidationError):
                self.catalog.import_from_delimited_text('star', text, 'json')

    def test_unsupported_format(self):
        with self.assertRaises(ValidationError):
            self.catalog.export_to_delimited_text('class', 'xml')
        with self.assertRaises(ValidationError):
            self.catalog.import_from_delimited_text('class', '', 'xml')


if __name__ == '__main__':
    unittest.main()
