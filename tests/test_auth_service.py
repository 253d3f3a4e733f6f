import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from performate.core.errors import ReferentialError, ValidationError
from performate.core.time_provider import TimeProvider
from performate.db import Base
from performate.models import Student, TallyHistory
from performate.services import auth_service
from performate.services.accounting_service import AccountingService


class ShiftedTimeProvider(TimeProvider):
    def __init__(self, days: int) -> None:
        self.days = days

    def now(self) -> datetime:
        return super().now() + timedelta(days=self.days)


class PasswordHashTests(unittest.TestCase):
    def test_hash_round_trip(self):
        hashed = auth_service._hash_password('Password@123')
        self.assertTrue(hashed.startswith('pbkdf2_sha256$'))
        self.assertTrue(auth_service._verify_password('Password@123', hashed))
        self.assertFalse(auth_service._verify_password('Password@124', hashed))

    def test_short_password_rejected(self):
        with self.assertRaises(ValidationError):
            auth_service._hash_password('short')

    def test_malformed_hash_never_verifies(self):
        self.assertFalse(auth_service._verify_password('Password@123', 'plain-text'))
        self.assertFalse(auth_service._verify_password('Password@123', 'md5$1$salt$abc'))


class AuthServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_auth_service.db'
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

    def _signup(self, email='mentor@school.test', short_form='AB'):
        return auth_service.signup(
            self.db,
            email=email,
            password='Password@123',
            full_name='Abdul Basith',
            short_form=short_form,
        )

    def test_signup_normalizes_email_and_issues_token(self):
        data = self._signup(email='  Mentor@School.TEST ')

        self.assertEqual(data['mentor']['email'], 'mentor@school.test')
        session = auth_service.validate_session_token(data['token'])
        self.assertEqual(session['mentor_id'], data['mentor']['id'])
        self.assertEqual(session['short_form'], 'AB')

    def test_signup_rejects_bad_input(self):
        self._signup()
        with self.assertRaises(ValidationError):
            self._signup(email='MENTOR@school.test')
        with self.assertRaises(ValidationError):
            self._signup(email='not-an-email')
        with self.assertRaises(ValidationError):
            self._signup(email='other@school.test', short_form=' ')

    def test_signin_failures_raise_authentication_error(self):
        self._signup()
        with self.assertRaises(auth_service.AuthenticationError):
            auth_service.signin(self.db, email='mentor@school.test', password='wrong-password')
        with self.assertRaises(auth_service.AuthenticationError):
            auth_service.signin(self.db, email='nobody@school.test', password='Password@123')

        data = auth_service.signin(self.db, email='MENTOR@school.test', password='Password@123')
        self.assertEqual(data['mentor']['short_form'], 'AB')

    def test_tokens_expire_and_can_be_revoked(self):
        token = self._signup()['token']

        self.assertIsNotNone(auth_service.validate_session_token(token, time_provider=ShiftedTimeProvider(1)))
        self.assertIsNone(auth_service.validate_session_token(token, time_provider=ShiftedTimeProvider(400)))

        auth_service.clear_session_token(token)
        self.assertIsNone(auth_service.validate_session_token(token))

    def test_tampered_token_rejected(self):
        token = self._signup()['token']
        header, payload, signature = token.split('.')
        forged = auth_service._encode_jwt({'sub': 99, 'short_form': 'XX'}).split('.')[1]

        self.assertIsNone(auth_service.validate_session_token(f'{header}.{forged}.{signature}'))
        self.assertIsNone(auth_service.validate_session_token('garbage'))
        self.assertIsNone(auth_service.validate_session_token(None))

    def test_deleting_mentor_keeps_history_short_form(self):
        mentor_id = self._signup()['mentor']['id']
        student = Student(name='Aarav', roll_number='1', class_name='S1A')
        self.db.add(student)
        self.db.commit()
        AccountingService(self.db).apply_tally(student.id, None, mentor_id, 'AB', 'class', points=1)

        auth_service.delete_mentor(self.db, mentor_id)

        history = self.db.execute(select(TallyHistory)).scalar_one()
        self.db.refresh(history)
        self.assertIsNone(history.mentor_id)
        self.assertEqual(history.mentor_short_form, 'AB')
        self.assertEqual(auth_service.list_mentors(self.db), [])
        with self.assertRaises(ReferentialError):
            auth_service.get_mentor(self.db, mentor_id)


if __name__ == '__main__':
    unittest.main()
