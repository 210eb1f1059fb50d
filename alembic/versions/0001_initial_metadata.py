"""initial schema: metadata registry and linked gear/trip tables

Revision ID: 0001_initial_metadata
Revises: 
Create Date: 2026-09-28T10:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = '0001_initial_metadata'
down_revision = None
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    return name in insp.get_table_names()


def _metadata_fk(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey('metadata.id', ondelete='RESTRICT'), nullable=True)


def upgrade():
    if not _has_table('metadata'):
        op.create_table(
            'metadata',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('category', sa.String(length=64), nullable=False),
            sa.Column('value', sa.String(length=128), nullable=False),
            sa.Column('label', sa.String(length=128), nullable=False),
            sa.Column('aliases', sa.JSON(), nullable=True),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('extra', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.UniqueConstraint('category', 'value', name='uq_metadata_category_value'),
        )
        op.create_index('ix_metadata_id', 'metadata', ['id'])
        op.create_index('ix_metadata_category', 'metadata', ['category'])
        op.create_index('ix_metadata_is_active', 'metadata', ['is_active'])

    if not _has_table('rod'):
        op.create_table(
            'rod',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=60), nullable=False),
            sa.Column('length', sa.Float(), nullable=True),
            sa.Column('note', sa.Text(), nullable=True),
            sa.Column('brand', sa.String(length=40), nullable=True),
            _metadata_fk('brand_metadata_id'),
            sa.Column('power', sa.String(length=20), nullable=True),
            _metadata_fk('power_metadata_id'),
            sa.Column('length_unit', sa.String(length=16), nullable=True),
            _metadata_fk('length_unit_metadata_id'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_rod_id', 'rod', ['id'])
        op.create_index('ix_rod_brand_metadata_id', 'rod', ['brand_metadata_id'])
        op.create_index('ix_rod_power_metadata_id', 'rod', ['power_metadata_id'])
        op.create_index('ix_rod_length_unit_metadata_id', 'rod', ['length_unit_metadata_id'])

    if not _has_table('reel'):
        op.create_table(
            'reel',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=60), nullable=False),
            sa.Column('note', sa.Text(), nullable=True),
            sa.Column('brand', sa.String(length=40), nullable=True),
            _metadata_fk('brand_metadata_id'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_reel_id', 'reel', ['id'])
        op.create_index('ix_reel_brand_metadata_id', 'reel', ['brand_metadata_id'])

    if not _has_table('trip'):
        op.create_table(
            'trip',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('title', sa.String(length=120), nullable=True),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('weather_type', sa.String(length=40), nullable=True),
            _metadata_fk('weather_metadata_id'),
            sa.Column('weather_temperature_text', sa.String(length=40), nullable=True),
            sa.Column('weather_wind_text', sa.String(length=40), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_trip_id', 'trip', ['id'])
        op.create_index('ix_trip_weather_metadata_id', 'trip', ['weather_metadata_id'])

    if not _has_table('combo'):
        op.create_table(
            'combo',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=60), nullable=False),
            sa.Column('rod_id', sa.Integer(), sa.ForeignKey('rod.id', ondelete='SET NULL'), nullable=True),
            sa.Column('reel_id', sa.Integer(), sa.ForeignKey('reel.id', ondelete='SET NULL'), nullable=True),
            sa.Column('scene_tags', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_combo_id', 'combo', ['id'])
        op.create_index('ix_combo_rod_id', 'combo', ['rod_id'])
        op.create_index('ix_combo_reel_id', 'combo', ['reel_id'])

    if not _has_table('combo_scene_metadata'):
        op.create_table(
            'combo_scene_metadata',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('combo_id', sa.Integer(), sa.ForeignKey('combo.id', ondelete='CASCADE'), nullable=False),
            sa.Column('metadata_id', sa.Integer(), sa.ForeignKey('metadata.id', ondelete='RESTRICT'), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.UniqueConstraint('combo_id', 'metadata_id', name='uq_combo_scene_metadata'),
        )
        op.create_index('ix_combo_scene_metadata_combo_id', 'combo_scene_metadata', ['combo_id'])
        op.create_index('ix_combo_scene_metadata_metadata_id', 'combo_scene_metadata', ['metadata_id'])

    if not _has_table('job'):
        op.create_table(
            'job',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=256), nullable=False),
            sa.Column('status', sa.String(length=32), nullable=True),
            sa.Column('progress', sa.Integer(), nullable=True),
            sa.Column('payload', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_job_status', 'job', ['status'])

    if not _has_table('audit_log'):
        op.create_table(
            'audit_log',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('resource_type', sa.String(length=64), nullable=False),
            sa.Column('resource_id', sa.Integer(), nullable=True),
            sa.Column('field', sa.String(length=128), nullable=False),
            sa.Column('old_value', sa.Text(), nullable=True),
            sa.Column('new_value', sa.Text(), nullable=True),
            sa.Column('actor', sa.String(length=128), nullable=True),
            sa.Column('ts', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_audit_log_resource_id', 'audit_log', ['resource_id'])


def downgrade():
    for name in (
        'audit_log',
        'job',
        'combo_scene_metadata',
        'combo',
        'trip',
        'reel',
        'rod',
        'metadata',
    ):
        if _has_table(name):
            op.drop_table(name)
