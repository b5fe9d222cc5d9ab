from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, ForeignKey, UniqueConstraint

from landverify.database import Base


class AuditEntry(Base):
    """Immutable audit record; `sequence` is monotonic per verification."""
    __tablename__ = "audit_entries"
    __table_args__ = (UniqueConstraint("verification_id", "sequence", name="uq_audit_entries_sequence"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    verification_id = Column(String(40), ForeignKey("verifications.verification_id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    action = Column(String(50), nullable=False)
    performed_by = Column(String(64), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    details = Column(JSON, nullable=True)


class NotificationLog(Base):
    """Outbox of notification intents; delivered outside the request transaction."""
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    verification_id = Column(String(40), nullable=True, index=True)
    recipient_id = Column(String(64), nullable=True)

    channel = Column(String(10), default="webhook")
    event_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=True)
    status = Column(String(10), default="pending", index=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
