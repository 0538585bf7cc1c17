"""
Security Monitor SQLAlchemy Models.

Native Uuid on both dialects; JSON documents are JSONB on PostgreSQL and
plain JSON on SQLite.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column

from secmonitor.db.engine import Base

JSONDocument = JSON().with_variant(postgresql.JSONB(), "postgresql")


class SecurityAuditLog(Base):
    """
    Immutable, append-only audit log of security-relevant events.

    Written by auth and data-access layers; the monitor reads it and appends
    SECURITY_ALERT entries for every dispatched alert.
    NO UPDATE, NO DELETE on this table.
    """

    __tablename__ = "security_audit_log"
    __table_args__ = (
        Index("ix_security_audit_log_created_at", "created_at"),
        Index("ix_security_audit_log_event_type", "event_type"),
        Index("ix_security_audit_log_severity", "severity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="INFO")

    # Who
    actor_id: Mapped[Optional[str]] = mapped_column(String(128))
    actor_email: Mapped[Optional[str]] = mapped_column(String(255))

    # What
    action: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    resource_type: Mapped[Optional[str]] = mapped_column(String(50))
    resource_id: Mapped[Optional[str]] = mapped_column(String(128))
    details: Mapped[Optional[dict]] = mapped_column(JSONDocument)

    # Tamper detection
    checksum: Mapped[Optional[str]] = mapped_column(String(64))

    # Naive UTC
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class SecurityAlertRuleModel(Base):
    """Configurable alert rules. Overrides the built-in catalog when non-empty."""

    __tablename__ = "security_alert_rules"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    event_types: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    threshold: Mapped[Optional[int]] = mapped_column(Integer)
    time_window_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="WARNING")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    channels: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ComplianceSetting(Base):
    """Key/value configuration store (channel credentials and endpoints)."""

    __tablename__ = "compliance_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
