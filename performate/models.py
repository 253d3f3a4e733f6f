from datetime import date, datetime
from enum import Enum
from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from performate.db import Base


DEFAULT_CLASS_NAMES = ('JCP3', 'S2A', 'S2B', 'C2A', 'C2B', 'S1A', 'S1B', 'C1A', 'C1B', 'C1C')
PRAYERS = ('Fajr', 'Dhuhr', 'Asr', 'Maghrib', 'Isha')


class TallyCategory(str, Enum):
    CLASS = 'class'
    PERFORMANCE = 'performance'
    STAR = 'star'


class CounterKind(str, Enum):
    TALLY = 'tally'
    OTHER_TALLY = 'other_tally'
    STAR = 'star'


class StarSource(str, Enum):
    MANUAL = 'manual'
    MORNING_BLISS = 'morning_bliss'


class AttendanceStatus(str, Enum):
    PRESENT = 'Present'
    ABSENT = 'Absent'
    HOSPITAL = 'Hospital'
    PROGRAM = 'Program'
    REPORTED = 'Reported'


class Mentor(Base):
    __tablename__ = 'mentors'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(160))
    short_form: Mapped[str] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class SchoolClass(Base):
    __tablename__ = 'classes'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Student(Base):
    __tablename__ = 'students'
    __table_args__ = (
        UniqueConstraint('roll_number', 'class_name', name='uq_students_roll_class'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(160))
    roll_number: Mapped[str] = mapped_column(String(40))
    class_name: Mapped[str] = mapped_column(String(40), index=True)
    photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    tally: Mapped['Tally | None'] = relationship('Tally', back_populates='student', cascade='all, delete-orphan', passive_deletes=True)
    other_tally: Mapped['OtherTally | None'] = relationship('OtherTally', back_populates='student', cascade='all, delete-orphan', passive_deletes=True)
    star: Mapped['Star | None'] = relationship('Star', back_populates='student', cascade='all, delete-orphan', passive_deletes=True)
    morning_bliss_entries: Mapped[list['MorningBliss']] = relationship('MorningBliss', back_populates='student', cascade='all, delete-orphan', passive_deletes=True)
    attendances: Mapped[list['AttendanceRecord']] = relationship('AttendanceRecord', back_populates='student', cascade='all, delete-orphan', passive_deletes=True)
    history: Mapped[list['TallyHistory']] = relationship('TallyHistory', back_populates='student', cascade='all, delete-orphan', passive_deletes=True)


class Tally(Base):
    __tablename__ = 'tallies'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), unique=True, index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
    fine_amount: Mapped[str] = mapped_column(String(20), default='0')
    added_by: Mapped[int | None] = mapped_column(ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='tally')


class OtherTally(Base):
    __tablename__ = 'other_tallies'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), unique=True, index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
    fine_amount: Mapped[str] = mapped_column(String(20), default='0')
    added_by: Mapped[int | None] = mapped_column(ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='other_tally')


class Star(Base):
    __tablename__ = 'stars'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), unique=True, index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
    added_by: Mapped[int | None] = mapped_column(ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True)
    source: Mapped[str] = mapped_column(String(20), default=StarSource.MANUAL.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='star')


class ClassReason(Base):
    __tablename__ = 'class_reasons'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reason: Mapped[str] = mapped_column(String(255))
    tally: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PerformanceReason(Base):
    __tablename__ = 'performance_reasons'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reason: Mapped[str] = mapped_column(String(255))
    tally: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StarReason(Base):
    __tablename__ = 'star_reasons'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reason: Mapped[str] = mapped_column(String(255))
    stars: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MorningBliss(Base):
    __tablename__ = 'morning_bliss'
    __table_args__ = (
        Index('ix_morning_bliss_class_date', 'class_name', 'entry_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), index=True)
    class_name: Mapped[str] = mapped_column(String(40))
    topic: Mapped[str] = mapped_column(String(255))
    score: Mapped[float] = mapped_column(Float)
    evaluated_by: Mapped[str] = mapped_column(String(160))
    evaluator_id: Mapped[int | None] = mapped_column(ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True)
    photo_urls: Mapped[list] = mapped_column(JSON, default=list)
    entry_date: Mapped[date] = mapped_column(Date, index=True)
    stars_awarded: Mapped[int] = mapped_column(Integer, default=0)
    is_daily_winner: Mapped[bool] = mapped_column(Boolean, default=False)
    is_topper: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='morning_bliss_entries')


class AttendanceRecord(Base):
    __tablename__ = 'attendance'
    __table_args__ = (
        # General (non-prayer) attendance is stored with prayer='' so the key stays unique.
        UniqueConstraint('student_id', 'attendance_date', 'prayer', name='uq_attendance_student_date_prayer'),
        Index('ix_attendance_class_date', 'class_name', 'attendance_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), index=True)
    class_name: Mapped[str] = mapped_column(String(40))
    attendance_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20))
    prayer: Mapped[str] = mapped_column(String(20), default='')
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    marked_by: Mapped[int | None] = mapped_column(ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='attendances')


class AttendanceArchive(Base):
    __tablename__ = 'attendance_archive'
    __table_args__ = (
        Index('ix_attendance_archive_class_month', 'class_name', 'original_month'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(Integer, index=True)
    class_name: Mapped[str] = mapped_column(String(40))
    attendance_date: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20))
    prayer: Mapped[str] = mapped_column(String(20), default='')
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    marked_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    archived_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    original_month: Mapped[str] = mapped_column(String(7), index=True)


class TallyHistory(Base):
    __tablename__ = 'tally_history'
    __table_args__ = (
        Index('ix_tally_history_student_created', 'student_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'))
    class_name: Mapped[str] = mapped_column(String(40))
    mentor_id: Mapped[int | None] = mapped_column(ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True)
    mentor_short_form: Mapped[str] = mapped_column(String(20))
    category: Mapped[str] = mapped_column(String(20), index=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    tally_value: Mapped[int] = mapped_column(Integer)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='history')


class DirectorMessage(Base):
    __tablename__ = 'director_messages'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
