"""Add job.lock_key for single-runner advisory locks

Revision ID: 20261012_job_lock_key
Revises: 0001_initial_metadata
Create Date: 2026-10-12
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = '20261012_job_lock_key'
down_revision = '0001_initial_metadata'
branch_labels = None
depends_on = None


def _has_column(table: str, column: str) -> bool:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    return column in {c['name'] for c in insp.get_columns(table)}


def upgrade() -> None:
    if not _has_column('job', 'lock_key'):
        # batch mode so SQLite can add the unique constraint
        with op.batch_alter_table('job') as batch:
            batch.add_column(sa.Column('lock_key', sa.String(length=128), nullable=True))
            batch.create_unique_constraint('uq_job_lock_key', ['lock_key'])


def downgrade() -> None:
    if _has_column('job', 'lock_key'):
        with op.batch_alter_table('job') as batch:
            batch.drop_constraint('uq_job_lock_key', type_='unique')
            batch.drop_column('lock_key')
