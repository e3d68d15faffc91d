"""inbound webhooks and per-tenant cal.com secret

Revision ID: 0003_inbound_webhooks
Revises: 0002_add_updated_at_triggers
Create Date: 2026-10-19 12:00:00.000000

Databases created from 0001 after these models existed already have the
tables and column, so every step checks first.
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0003_inbound_webhooks"
down_revision = "0002_add_updated_at_triggers"
branch_labels = None
depends_on = None


from app.models.inbound_webhook import InboundWebhook, InboundWebhookLog  # noqa: E402


def upgrade() -> None:
    bind = op.get_bind()
    tenant_columns = {c["name"] for c in sa.inspect(bind).get_columns("tenants")}
    if "calcom_webhook_secret" not in tenant_columns:
        op.add_column("tenants", sa.Column("calcom_webhook_secret", sa.String(255)))

    InboundWebhook.__table__.create(bind=bind, checkfirst=True)
    InboundWebhookLog.__table__.create(bind=bind, checkfirst=True)

    op.execute("DROP TRIGGER IF EXISTS trg_inbound_webhooks_updated_at ON inbound_webhooks;")
    op.execute("""
        CREATE TRIGGER trg_inbound_webhooks_updated_at
        BEFORE UPDATE ON inbound_webhooks
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_inbound_webhooks_updated_at ON inbound_webhooks;")
    op.drop_table("inbound_webhook_logs")
    op.drop_table("inbound_webhooks")
    op.drop_column("tenants", "calcom_webhook_secret")
