"""Add interaction and listener similarity tables

Revision ID: 001_add_recommendation_tables
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa
from sqlalchemy import inspect

from alembic import op

# revision identifiers, used by Alembic.
revision = '001_add_recommendation_tables'
down_revision = None
branch_labels = None
depends_on = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    # Catalog tables (users, songs) are owned by the main backend and already exist
    if not table_exists('user_interactions'):
        op.create_table(
            'user_interactions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('song_id', sa.Integer(), nullable=False),
            sa.Column('play_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_liked', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('is_added_to_playlist', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('is_downloaded', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('interaction_score', sa.Float(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('last_interacted_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.ForeignKeyConstraint(['song_id'], ['songs.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'song_id', name='unique_user_song_interaction'),
        )
        op.create_index('ix_user_interactions_user_id', 'user_interactions', ['user_id'])
        op.create_index('ix_user_interactions_song_id', 'user_interactions', ['song_id'])
        op.create_index('ix_user_interactions_interaction_score', 'user_interactions', ['interaction_score'])

    if not table_exists('user_similarities'):
        op.create_table(
            'user_similarities',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id_1', sa.Integer(), nullable=False),
            sa.Column('user_id_2', sa.Integer(), nullable=False),
            sa.Column('similarity_score', sa.Float(), nullable=False),
            sa.Column('last_updated', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id_1'], ['users.id']),
            sa.ForeignKeyConstraint(['user_id_2'], ['users.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id_1', 'user_id_2', name='unique_user_similarity_pair'),
            sa.CheckConstraint('user_id_1 < user_id_2', name='canonical_user_similarity_pair'),
        )
        op.create_index('ix_user_similarities_user_id_1', 'user_similarities', ['user_id_1'])
        op.create_index('ix_user_similarities_user_id_2', 'user_similarities', ['user_id_2'])
        op.create_index('ix_user_similarities_similarity_score', 'user_similarities', ['similarity_score'])


def downgrade() -> None:
    op.drop_index('ix_user_similarities_similarity_score', 'user_similarities')
    op.drop_index('ix_user_similarities_user_id_2', 'user_similarities')
    op.drop_index('ix_user_similarities_user_id_1', 'user_similarities')
    op.drop_table('user_similarities')

    op.drop_index('ix_user_interactions_interaction_score', 'user_interactions')
    op.drop_index('ix_user_interactions_song_id', 'user_interactions')
    op.drop_index('ix_user_interactions_user_id', 'user_interactions')
    op.drop_table('user_interactions')
