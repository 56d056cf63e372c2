"""Create viewings table

Revision ID: a1c4e7f20b13
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f20b13'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

viewing_status = sa.Enum(
    'scheduled', 'confirmed', 'completed', 'cancelled',
    name='viewing_status',
)


def upgrade() -> None:
    op.create_table(
        'viewings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('visitor_name', sa.String(length=255), nullable=False),
        sa.Column('visitor_email', sa.String(length=320), nullable=False),
        sa.Column('visitor_phone', sa.String(length=50), nullable=True),
        sa.Column('viewing_date', sa.DateTime(), nullable=False),
        sa.Column('slot_date', sa.Date(), nullable=False),
        sa.Column('viewing_time', sa.String(length=5), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', viewing_status, nullable=False, server_default='scheduled'),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_viewings_property_id', 'viewings', ['property_id'])
    op.create_index('ix_viewings_user_id', 'viewings', ['user_id'])
    op.create_index('ix_viewings_status', 'viewings', ['status'])
    op.create_index('ix_viewings_status_date', 'viewings', ['status', 'viewing_date'])

    # One active booking per (property, day, time); cancelled rows free the slot
    active_slot = sa.text("status != 'cancelled'")
    op.create_index(
        'uq_viewings_active_slot',
        'viewings',
        ['property_id', 'slot_date', 'viewing_time'],
        unique=True,
        sqlite_where=active_slot,
        postgresql_where=active_slot,
    )


def downgrade() -> None:
    op.drop_index('uq_viewings_active_slot', table_name='viewings')
    op.drop_index('ix_viewings_status_date', table_name='viewings')
    op.drop_index('ix_viewings_status', table_name='viewings')
    op.drop_index('ix_viewings_user_id', table_name='viewings')
    op.drop_index('ix_viewings_property_id', table_name='viewings')
    op.drop_table('viewings')
    viewing_status.drop(op.get_bind(), checkfirst=True)
