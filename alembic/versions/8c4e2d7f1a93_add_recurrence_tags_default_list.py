"""Add recurrence, tags and default-list columns

Revision ID: 8c4e2d7f1a93
Revises: 3b1f6c2a9d40
Create Date: 2026-10-19 15:40:12.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "8c4e2d7f1a93"
down_revision: Union[str, Sequence[str], None] = "3b1f6c2a9d40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NEW_COLUMNS = {
    "reminders": [
        sa.Column("recurrence_rule", sa.JSON(), nullable=True),
        sa.Column("recurrence_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
    ],
    "reminder_lists": [
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
    ],
}


def upgrade() -> None:
    # The initial revision builds tables from the current models, so a fresh
    # database already has these columns
    inspector = inspect(op.get_bind())
    for table, columns in NEW_COLUMNS.items():
        existing = {column["name"] for column in inspector.get_columns(table)}
        for column in columns:
            if column.name not in existing:
                op.add_column(table, column)


def downgrade() -> None:
    op.drop_column("reminder_lists", "is_default")
    op.drop_column("reminders", "tags")
    op.drop_column("reminders", "recurrence_end")
    op.drop_column("reminders", "recurrence_rule")
