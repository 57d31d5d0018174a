from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision = "0002_summary_and_admin_draft"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("businesses", sa.Column("last_summary_on", sa.Date(), nullable=True))
    op.add_column("admin_states", sa.Column("draft", JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True))


def downgrade() -> None:
    op.drop_column("admin_states", "draft")
    op.drop_column("businesses", "last_summary_on")
