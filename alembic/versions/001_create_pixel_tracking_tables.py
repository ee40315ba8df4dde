"""Create pixel tracking tables

Revision ID: 001_pixel_tracking
Revises:
Create Date: 2026-10-19

pixel_apps, pixel_settings, events, analytics_sessions, daily_stats, custom_events
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_pixel_tracking'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'pixel_apps',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('external_id', sa.String(100), nullable=False, unique=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('website_domain', sa.String(255), nullable=True),
        sa.Column('shop', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_pixel_apps_shop', 'pixel_apps', ['shop'])
    op.create_index('idx_pixel_apps_shop_enabled', 'pixel_apps', ['shop', 'enabled'])

    op.create_table(
        'pixel_settings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pixel_app_id', sa.Uuid(), nullable=False, unique=True),
        sa.Column('external_pixel_id', sa.String(100), nullable=True),
        sa.Column('external_access_token', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('test_event_code', sa.String(100), nullable=True),
        sa.Column('record_ip', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('record_location', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('record_session', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('custom_events_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('forwarding_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['pixel_app_id'], ['pixel_apps.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pixel_app_id', sa.Uuid(), nullable=False),
        sa.Column('event_name', sa.String(100), nullable=False),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('session_id', sa.String(200), nullable=True),
        sa.Column('fingerprint', sa.String(200), nullable=True),
        sa.Column('page_title', sa.String(500), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('browser', sa.String(50), nullable=True),
        sa.Column('browser_version', sa.String(50), nullable=True),
        sa.Column('os', sa.String(50), nullable=True),
        sa.Column('os_version', sa.String(50), nullable=True),
        sa.Column('device_type', sa.String(20), nullable=True),
        sa.Column('screen_width', sa.Integer(), nullable=True),
        sa.Column('screen_height', sa.Integer(), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('region', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('country_code', sa.String(10), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=True),
        sa.Column('utm_source', sa.String(200), nullable=True),
        sa.Column('utm_medium', sa.String(200), nullable=True),
        sa.Column('utm_campaign', sa.String(200), nullable=True),
        sa.Column('utm_term', sa.String(200), nullable=True),
        sa.Column('utm_content', sa.String(200), nullable=True),
        sa.Column('value', sa.Float(), nullable=True),
        sa.Column('currency', sa.String(10), nullable=True),
        sa.Column('product_id', sa.String(200), nullable=True),
        sa.Column('product_name', sa.String(500), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('custom_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['pixel_app_id'], ['pixel_apps.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_events_pixel_app_id', 'events', ['pixel_app_id'])
    op.create_index('ix_events_event_name', 'events', ['event_name'])
    op.create_index('ix_events_session_id', 'events', ['session_id'])
    op.create_index('ix_events_created_at', 'events', ['created_at'])
    op.create_index('idx_events_app_event', 'events', ['pixel_app_id', 'event_name'])
    op.create_index('idx_events_app_date', 'events', ['pixel_app_id', 'created_at'])

    op.create_table(
        'analytics_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pixel_app_id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.String(200), nullable=False, unique=True),
        sa.Column('fingerprint', sa.String(200), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('browser', sa.String(50), nullable=True),
        sa.Column('os', sa.String(50), nullable=True),
        sa.Column('device_type', sa.String(20), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('pageviews', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_seen', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['pixel_app_id'], ['pixel_apps.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_analytics_sessions_pixel_app_id', 'analytics_sessions', ['pixel_app_id'])

    op.create_table(
        'daily_stats',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pixel_app_id', sa.Uuid(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('pageviews', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unique_users', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sessions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchases', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('revenue', sa.Float(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['pixel_app_id'], ['pixel_apps.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('pixel_app_id', 'date', name='uq_daily_stats_app_date'),
    )

    op.create_table(
        'custom_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pixel_app_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('external_event_name', sa.String(100), nullable=True),
        sa.Column('event_data', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['pixel_app_id'], ['pixel_apps.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('pixel_app_id', 'name', name='uq_custom_events_app_name'),
    )
    op.create_index('ix_custom_events_pixel_app_id', 'custom_events', ['pixel_app_id'])


def downgrade():
    op.drop_index('ix_custom_events_pixel_app_id', table_name='custom_events')
    op.drop_table('custom_events')
    op.drop_table('daily_stats')
    op.drop_index('ix_analytics_sessions_pixel_app_id', table_name='analytics_sessions')
    op.drop_table('analytics_sessions')
    for index in (
        'idx_events_app_date',
        'idx_events_app_event',
        'ix_events_created_at',
        'ix_events_session_id',
        'ix_events_event_name',
        'ix_events_pixel_app_id',
    ):
        op.drop_index(index, table_name='events')
    op.drop_table('events')
    op.drop_table('pixel_settings')
    op.drop_index('idx_pixel_apps_shop_enabled', table_name='pixel_apps')
    op.drop_index('ix_pixel_apps_shop', table_name='pixel_apps')
    op.drop_table('pixel_apps')
