"""Allow at most one running reconciliation run.

Revision ID: 0002_single_running_run
Revises: 0001_initial_schema
Create Date: 2026-10-19 14:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0002_single_running_run"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None

_RUNNING_ONLY = sa.text("status = 'RUNNING'")


def upgrade() -> None:
    op.execute(
        sa.text(
            "UPDATE reconciliation_run SET status = 'FAILED', "
            "message = 'abandoned: superseded by a newer running run' "
            "WHERE status = 'RUNNING' AND id NOT IN ("
            "SELECT id FROM reconciliation_run WHERE status = 'RUNNING' "
            "ORDER BY started_at DESC LIMIT 1)"
        )
    )
    op.create_index(
        "uq_reconciliation_run_running",
        "reconciliation_run",
        ["status"],
        unique=True,
        sqlite_where=_RUNNING_ONLY,
        postgresql_where=_RUNNING_ONLY,
    )


def downgrade() -> None:
    op.drop_index("uq_reconciliation_run_running", table_name="reconciliation_run")
