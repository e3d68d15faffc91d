"""add updated_at triggers

Revision ID: 0002_add_updated_at_triggers
Revises: 0001_initial_crm_schema
Create Date: 2026-10-19 09:30:00.000000

The ORM sets ``updated_at`` through ``onupdate``; bulk UPDATE statements
and raw SQL bypass it, so the column is also maintained
by a trigger.
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_add_updated_at_triggers"
down_revision = "0001_initial_crm_schema"
branch_labels = None
depends_on = None


TABLES_WITH_UPDATED_AT = (
    "accounts",
    "bookings",
    "contacts",
    "deals",
    "google_tokens",
    "leads",
    "linkedin_profiles",
    "lead_scoring_rules",
    "lead_scoring_settings",
    "tasks",
    "web_forms",
    "workflows",
)


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    for table in TABLES_WITH_UPDATED_AT:
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
        """)


def downgrade() -> None:
    for table in TABLES_WITH_UPDATED_AT:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_updated_at ON {table};")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column();")
