"""initial schema: user, game, player, save

Revision ID: 4c1d9a7e2b10
Revises:
Create Date: 2026-09-14 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1d9a7e2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('auth_provider', sa.String(length=32), nullable=False),
        sa.Column('password_hash', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    # game.current_turn_id -> player.id is added once player exists
    op.create_table(
        'game',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('creator_id', sa.String(length=36), nullable=False),
        sa.Column('current_turn_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['creator_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_name', 'game', ['name'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('game_id', sa.String(length=36), nullable=False),
        sa.Column('turn_order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'user_id', name='uq_player_game_user'),
    )
    op.create_index('ix_player_game_id', 'player', ['game_id'], unique=False)
    op.create_index('ix_player_user_id', 'player', ['user_id'], unique=False)

    with op.batch_alter_table('game') as batch_op:
        batch_op.create_foreign_key('fk_game_current_turn_id', 'player', ['current_turn_id'], ['id'])

    op.create_table(
        'save',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('game_id', sa.String(length=36), nullable=False),
        sa.Column('file_path', sa.String(length=512), nullable=False),
        sa.Column('uploaded_by', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['uploaded_by'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_save_game_id', 'save', ['game_id'], unique=False)
    op.create_index('ix_save_created_at', 'save', ['created_at'], unique=False)


def downgrade():
    op.drop_index('ix_save_created_at', table_name='save')
    op.drop_index('ix_save_game_id', table_name='save')
    op.drop_table('save')
    with op.batch_alter_table('game') as batch_op:
        batch_op.drop_constraint('fk_game_current_turn_id', type_='foreignkey')
    op.drop_index('ix_player_user_id', table_name='player')
    op.drop_index('ix_player_game_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_game_name', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_user_email', table_name='user')
    op.drop_table('user')
