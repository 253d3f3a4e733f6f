"""director messages

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:02:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261018_0002'
down_revision = '20261018_0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'director_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_director_messages_id', 'director_messages', ['id'])
    op.create_index('ix_director_messages_created_at', 'director_messages', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_director_messages_created_at', table_name='director_messages')
    op.drop_index('ix_director_messages_id', table_name='director_messages')
    op.drop_table('director_messages')
