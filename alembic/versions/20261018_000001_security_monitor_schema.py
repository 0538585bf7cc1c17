"""Security monitor schema.

Creates the audit log, the alert rule configuration table and the
compliance_settings key/value store.

Revision ID: secmonitor_001
Revises:
Create Date: 2026-10-18
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "secmonitor_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ──────────────────────────────────────────────────────────────────────
    # Audit log (append-only)
    # ──────────────────────────────────────────────────────────────────────
    op.execute("""
    CREATE TABLE IF NOT EXISTS security_audit_log (
        id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        event_type      VARCHAR(50) NOT NULL,
        severity        VARCHAR(20) NOT NULL DEFAULT 'INFO',
        actor_id        VARCHAR(128),
        actor_email     VARCHAR(255),
        action          VARCHAR(500) NOT NULL DEFAULT '',
        resource_type   VARCHAR(50),
        resource_id     VARCHAR(128),
        details         JSONB,
        checksum        VARCHAR(64),
        created_at      TIMESTAMP NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc')
    )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_security_audit_log_created_at ON security_audit_log (created_at)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_security_audit_log_event_type ON security_audit_log (event_type)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_security_audit_log_severity ON security_audit_log (severity)")

    # ──────────────────────────────────────────────────────────────────────
    # Rule configuration
    # ──────────────────────────────────────────────────────────────────────
    op.execute("""
    CREATE TABLE IF NOT EXISTS security_alert_rules (
        id                  VARCHAR(128) PRIMARY KEY,
        name                VARCHAR(255) NOT NULL,
        description         TEXT,
        event_types         JSONB NOT NULL DEFAULT '[]',
        threshold           INTEGER CHECK (threshold IS NULL OR threshold >= 1),
        time_window_minutes INTEGER CHECK (time_window_minutes IS NULL OR time_window_minutes >= 1),
        severity            VARCHAR(20) NOT NULL DEFAULT 'WARNING',
        enabled             BOOLEAN NOT NULL DEFAULT TRUE,
        channels            JSONB NOT NULL DEFAULT '[]',
        created_at          TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc'),
        updated_at          TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc')
    )
    """)

    # ──────────────────────────────────────────────────────────────────────
    # Channel credentials
    # ──────────────────────────────────────────────────────────────────────
    op.execute("""
    CREATE TABLE IF NOT EXISTS compliance_settings (
        key             VARCHAR(100) PRIMARY KEY,
        value           TEXT,
        updated_at      TIMESTAMP DEFAULT (NOW() AT TIME ZONE 'utc')
    )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS compliance_settings")
    op.execute("DROP TABLE IF EXISTS security_alert_rules")
    op.execute("DROP TABLE IF EXISTS security_audit_log")
