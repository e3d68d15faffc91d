"""initial crm schema

Revision ID: 0001_initial_crm_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates every table declared on ``app.models.Base``.  Column types,
constraints and indexes live on the models; this revision only
materialises them so that fresh databases and the ORM never drift.
"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_crm_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Import at migration time so the schema follows the models.
from app.models import Base  # noqa: E402


def upgrade() -> None:
    # gen_random_uuid() is built in from PostgreSQL 13; pgcrypto covers older servers
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
