"""add active_slot to game so only one game can be active

Revision ID: 9b5d0f31e6a2
Revises: 4c2e9a7b1d03
Create Date: 2026-03-02 10:05:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9b5d0f31e6a2'
down_revision = '4c2e9a7b1d03'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('game')}
    if 'active_slot' in cols:
        return
    with op.batch_alter_table('game') as batch_op:
        batch_op.add_column(sa.Column('active_slot', sa.Boolean(), nullable=True))
    # Keep only the newest open game active; NULLs never collide in the unique constraint
    op.execute(
        "UPDATE game SET active_slot = TRUE "
        "WHERE id = (SELECT MAX(id) FROM game WHERE end_time IS NULL)"
    )
    with op.batch_alter_table('game') as batch_op:
        batch_op.create_unique_constraint('uq_game_active_slot', ['active_slot'])


def downgrade():
    with op.batch_alter_table('game') as batch_op:
        batch_op.drop_constraint('uq_game_active_slot', type_='unique')
        batch_op.drop_column('active_slot')
