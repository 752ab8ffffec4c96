"""create leaderboard table

Revision ID: 4b7e9c1d2a30
Revises: 
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7e9c1d2a30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'leaderboard' in set(insp.get_table_names()):
        return

    op.create_table(
        'leaderboard',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('leaderboard') as batch_op:
        batch_op.create_index(batch_op.f('ix_leaderboard_username'), ['username'], unique=True)


def downgrade():
    with op.batch_alter_table('leaderboard') as batch_op:
        batch_op.drop_index(batch_op.f('ix_leaderboard_username'))
    op.drop_table('leaderboard')
