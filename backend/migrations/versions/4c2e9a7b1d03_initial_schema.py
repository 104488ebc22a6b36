"""initial schema: user, deck, game, game_player, game_turn

Revision ID: 4c2e9a7b1d03
Revises:
Create Date: 2026-02-11 18:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2e9a7b1d03'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_user_name', 'user', ['name'], unique=True)

    op.create_table(
        'deck',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('avatar_url', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('turn_limit_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('team_time_limit_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('first_move_team', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('team1_name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('team2_name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('current_turn_team', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_turn_start', sa.DateTime(), nullable=True),
        sa.Column('is_paused', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('pause_started_at', sa.DateTime(), nullable=True),
        sa.Column('total_pause_duration_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('winning_team', sa.Integer(), nullable=True),
        sa.Column('is_technical_defeat', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_game_end_time', 'game', ['end_time'])

    op.create_table(
        'game_player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('seat', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deck_id', sa.Integer(), nullable=False),
        sa.Column('deck_name', sa.String(length=150), nullable=False, server_default=''),
    )
    op.create_index('ix_game_player_game_id', 'game_player', ['game_id'])
    op.create_index('ix_game_player_user_id', 'game_player', ['user_id'])

    op.create_table(
        'game_turn',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('team_number', sa.Integer(), nullable=False),
        sa.Column('duration_sec', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('overtime_sec', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_game_turn_game_id', 'game_turn', ['game_id'])


def downgrade():
    op.drop_index('ix_game_turn_game_id', table_name='game_turn')
    op.drop_table('game_turn')
    op.drop_index('ix_game_player_user_id', table_name='game_player')
    op.drop_index('ix_game_player_game_id', table_name='game_player')
    op.drop_table('game_player')
    op.drop_index('ix_game_end_time', table_name='game')
    op.drop_table('game')
    op.drop_table('deck')
    op.drop_index('ix_user_name', table_name='user')
    op.drop_table('user')
