"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), unique=True, nullable=True),
        sa.Column('collision_detection_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('memory_completeness', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )

    op.create_table(
        'content',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('text', sa.Text(), nullable=False, server_default=''),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('idx_content_user_id', 'content', ['user_id'])
    op.create_index('idx_content_timestamp', 'content', ['timestamp'])

    op.create_table(
        'media',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('taken_at', sa.DateTime(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('idx_media_user_taken_at', 'media', ['user_id', 'taken_at'])
    op.create_index('idx_media_lat_lon', 'media', ['latitude', 'longitude'])

    op.create_table(
        'event_tags',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('event_id', sa.String(64), nullable=True),
        sa.Column('event_title', sa.String(255), nullable=True),
        sa.Column('event_date', sa.DateTime(), nullable=True),
        sa.Column('tagger_id', sa.String(64), nullable=False),
        sa.Column('tagged_user_id', sa.String(64), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('tagged_user_perspective', sa.Text(), nullable=True),
        sa.Column('verification_data', postgresql.JSONB(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('idx_event_tags_pair_status', 'event_tags', ['tagger_id', 'tagged_user_id', 'status'])
    op.create_index('idx_event_tags_tagged_user', 'event_tags', ['tagged_user_id', 'status'])

    op.create_table(
        'memory_collisions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('users', postgresql.JSONB(), nullable=False),
        sa.Column('users_key', sa.Text(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('detected_by', sa.String(50), nullable=False),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('timestamp', 'users_key', name='uq_memory_collisions_timestamp_users'),
    )
    op.create_index('idx_memory_collisions_users_key', 'memory_collisions', ['users_key'])

    op.create_table(
        'connections',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_a_id', sa.String(64), nullable=False),
        sa.Column('user_b_id', sa.String(64), nullable=False),
        sa.Column('strength_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shared_events', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('relationship_type', sa.String(100), nullable=True),
        sa.Column('last_interaction', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('user_a_id', 'user_b_id', name='uq_connections_pair'),
        sa.CheckConstraint('user_a_id < user_b_id COLLATE "C"', name='ck_connections_pair_order'),
    )
    op.create_index('idx_connections_user_b', 'connections', ['user_b_id'])

    op.create_table(
        'story_mergers',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('event_id', sa.String(64), nullable=False),
        sa.Column('event_title', sa.String(255), nullable=False),
        sa.Column('event_date', sa.DateTime(), nullable=False),
        sa.Column('participants', postgresql.JSONB(), nullable=False),
        sa.Column('approval_status', postgresql.JSONB(), nullable=False),
        sa.Column('merged_content', postgresql.JSONB(), nullable=False),
        sa.Column('resolutions', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('revenue_share', postgresql.JSONB(), nullable=True),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['event_id'], ['memory_collisions.id']),
    )
    op.create_index('idx_story_mergers_event_id', 'story_mergers', ['event_id'])
    op.create_index('idx_story_mergers_published', 'story_mergers', ['is_published', 'published_at'])


def downgrade() -> None:
    op.drop_table('story_mergers')
    op.drop_table('connections')
    op.drop_table('memory_collisions')
    op.drop_table('event_tags')
    op.drop_table('media')
    op.drop_table('content')
    op.drop_table('users')
