"""initial performate schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261018_0001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list:
    columns = [sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now())]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()))
    return columns


def upgrade() -> None:
    op.create_table(
        'mentors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=160), nullable=False),
        sa.Column('short_form', sa.String(length=20), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_mentors_id', 'mentors', ['id'])
    op.create_index('ix_mentors_email', 'mentors', ['email'], unique=True)

    op.create_table(
        'classes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=40), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_classes_id', 'classes', ['id'])
    op.create_index('ix_classes_name', 'classes', ['name'], unique=True)
    op.create_index('ix_classes_is_active', 'classes', ['is_active'])

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('roll_number', sa.String(length=40), nullable=False),
        sa.Column('class_name', sa.String(length=40), nullable=False),
        sa.Column('photo_url', sa.String(length=500), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('roll_number', 'class_name', name='uq_students_roll_class'),
    )
    op.create_index('ix_students_id', 'students', ['id'])
    op.create_index('ix_students_class_name', 'students', ['class_name'])

    for table_name in ('tallies', 'other_tallies'):
        op.create_table(
            table_name,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
            sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('fine_amount', sa.String(length=20), nullable=False, server_default='0'),
            sa.Column('added_by', sa.Integer(), sa.ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True),
            *_timestamps(),
        )
        op.create_index(f'ix_{table_name}_id', table_name, ['id'])
        op.create_index(f'ix_{table_name}_student_id', table_name, ['student_id'], unique=True)

    op.create_table(
        'stars',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('added_by', sa.Integer(), sa.ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True),
        sa.Column('source', sa.String(length=20), nullable=False, server_default='manual'),
        *_timestamps(updated=False),
    )
    op.create_index('ix_stars_id', 'stars', ['id'])
    op.create_index('ix_stars_student_id', 'stars', ['student_id'], unique=True)

    for table_name, value_column in (('class_reasons', 'tally'), ('performance_reasons', 'tally'), ('star_reasons', 'stars')):
        op.create_table(
            table_name,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('reason', sa.String(length=255), nullable=False),
            sa.Column(value_column, sa.Integer(), nullable=False, server_default='1'),
            *_timestamps(),
        )
        op.create_index(f'ix_{table_name}_id', table_name, ['id'])

    op.create_table(
        'morning_bliss',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('class_name', sa.String(length=40), nullable=False),
        sa.Column('topic', sa.String(length=255), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('evaluated_by', sa.String(length=160), nullable=False),
        sa.Column('evaluator_id', sa.Integer(), sa.ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True),
        sa.Column('photo_urls', sa.JSON(), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('stars_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_daily_winner', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_topper', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )
    op.create_index('ix_morning_bliss_id', 'morning_bliss', ['id'])
    op.create_index('ix_morning_bliss_student_id', 'morning_bliss', ['student_id'])
    op.create_index('ix_morning_bliss_entry_date', 'morning_bliss', ['entry_date'])
    op.create_index('ix_morning_bliss_is_topper', 'morning_bliss', ['is_topper'])
    op.create_index('ix_morning_bliss_class_date', 'morning_bliss', ['class_name', 'entry_date'])

    op.create_table(
        'attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('class_name', sa.String(length=40), nullable=False),
        sa.Column('attendance_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('prayer', sa.String(length=20), nullable=False, server_default=''),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('marked_by', sa.Integer(), sa.ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('student_id', 'attendance_date', 'prayer', name='uq_attendance_student_date_prayer'),
    )
    op.create_index('ix_attendance_id', 'attendance', ['id'])
    op.create_index('ix_attendance_student_id', 'attendance', ['student_id'])
    op.create_index('ix_attendance_class_date', 'attendance', ['class_name', 'attendance_date'])

    op.create_table(
        'attendance_archive',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('class_name', sa.String(length=40), nullable=False),
        sa.Column('attendance_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('prayer', sa.String(length=20), nullable=False, server_default=''),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('marked_by', sa.Integer(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('original_month', sa.String(length=7), nullable=False),
    )
    op.create_index('ix_attendance_archive_id', 'attendance_archive', ['id'])
    op.create_index('ix_attendance_archive_student_id', 'attendance_archive', ['student_id'])
    op.create_index('ix_attendance_archive_original_month', 'attendance_archive', ['original_month'])
    op.create_index('ix_attendance_archive_class_month', 'attendance_archive', ['class_name', 'original_month'])

    op.create_table(
        'tally_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('class_name', sa.String(length=40), nullable=False),
        sa.Column('mentor_id', sa.Integer(), sa.ForeignKey('mentors.id', ondelete='SET NULL'), nullable=True),
        sa.Column('mentor_short_form', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('tally_value', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=128), nullable=True, unique=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_tally_history_id', 'tally_history', ['id'])
    op.create_index('ix_tally_history_category', 'tally_history', ['category'])
    op.create_index('ix_tally_history_student_created', 'tally_history', ['student_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('tally_history')
    op.drop_table('attendance_archive')
    op.drop_table('attendance')
    op.drop_table('morning_bliss')
    for table_name in ('star_reasons', 'performance_reasons', 'class_reasons'):
        op.drop_table(table_name)
    op.drop_table('stars')
    op.drop_table('other_tallies')
    op.drop_table('tallies')
    op.drop_table('students')
    op.drop_table('classes')
    op.drop_table('mentors')
