"""Create users, devices, reminder lists, reminders and sync events

Revision ID: 3b1f6c2a9d40
Revises:
Create Date: 2026-10-19 09:12:44.201355

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3b1f6c2a9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from the current models."""
    from remindme.database import Base
    from remindme import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)


def downgrade() -> None:
    from remindme.database import Base
    from remindme import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind)
