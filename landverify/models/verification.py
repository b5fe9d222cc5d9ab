from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column, String, Integer, Float, Numeric, Boolean, Text, DateTime, Enum, JSON,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from landverify.database import Base
from landverify.core.clock import ensure_utc
from landverify.core.constants import (
    RequestType, Purpose, Urgency, VerificationStatus, StepName, StepStatus,
    PaymentStatus, PaymentMethod, TERMINAL_STATUSES,
)


class Verification(Base):
    """Aggregate root: a land verification request and everything embedded in it."""
    __tablename__ = "verifications"

    verification_id = Column(String(40), primary_key=True)
    reference_number = Column(String(40), nullable=False, index=True)

    # External references
    land_id = Column(String(64), nullable=False, index=True)
    requested_by = Column(String(64), nullable=False, index=True)

    # Classification
    request_type = Column(Enum(RequestType), nullable=False, default=RequestType.OWNERSHIP_CHECK)
    purpose = Column(Enum(Purpose), nullable=False)
    urgency = Column(Enum(Urgency), nullable=False, default=Urgency.STANDARD)
    scope = Column(JSON, nullable=False)

    # Payment ledger
    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    refund_reason = Column(Text, nullable=True)
    refund_date = Column(DateTime(timezone=True), nullable=True)
    waiver_reason = Column(Text, nullable=True)

    # Workflow
    status = Column(Enum(VerificationStatus), nullable=False, default=VerificationStatus.PENDING, index=True)

    # Timeline / SLA
    work_started_date = Column(DateTime(timezone=True), nullable=True)
    field_work_date = Column(DateTime(timezone=True), nullable=True)
    draft_report_date = Column(DateTime(timezone=True), nullable=True)
    quality_check_date = Column(DateTime(timezone=True), nullable=True)
    expected_completion_date = Column(DateTime(timezone=True), nullable=True, index=True)
    actual_completion_date = Column(DateTime(timezone=True), nullable=True)
    current_sla = Column(Integer, nullable=False)             # hours
    sla_compliant = Column(Boolean, nullable=True)
    overdue_flagged_at = Column(DateTime(timezone=True), nullable=True)

    # Findings recorded by officers (validated by the schemas in landverify.schemas.findings)
    ownership_details = Column(JSON, nullable=False, default=dict)
    title_verification = Column(JSON, nullable=False, default=dict)
    encumbrances = Column(JSON, nullable=False, default=dict)
    physical_verification = Column(JSON, nullable=False, default=dict)

    # Outcome
    results = Column(JSON, nullable=True)
    scored_at = Column(DateTime(timezone=True), nullable=True)
    report = Column(JSON, nullable=True)

    # Messages sent to the requester, oldest first
    client_updates = Column(JSON, nullable=False, default=list)

    # Concurrency / audit ordering
    audit_sequence = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    steps = relationship(
        "WorkflowStep",
        order_by="WorkflowStep.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    payments = relationship(
        "PaymentEntry",
        order_by="PaymentEntry.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    audit_entries = relationship(
        "AuditEntry",
        order_by="AuditEntry.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def get_step(self, name: StepName) -> Optional["WorkflowStep"]:
        return next((s for s in self.steps if s.name == name), None)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def amount_paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal("0"))

    @property
    def completion_progress(self) -> float:
        if not self.steps:
            return 0.0
        done = sum(1 for s in self.steps if s.status == StepStatus.COMPLETED)
        return round(done / len(self.steps) * 100, 2)

    @property
    def estimated_time_remaining(self) -> float:
        if self.status == VerificationStatus.COMPLETED:
            return 0.0
        return sum(
            s.estimated_duration or 0
            for s in self.steps
            if s.status in (StepStatus.PENDING, StepStatus.IN_PROGRESS)
        )

    def is_overdue(self, now: datetime) -> bool:
        if self.is_terminal or self.expected_completion_date is None:
            return False
        return now > ensure_utc(self.expected_completion_date)


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"
    __table_args__ = (UniqueConstraint("verification_id", "name", name="uq_workflow_steps_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    verification_id = Column(String(40), ForeignKey("verifications.verification_id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    name = Column(Enum(StepName), nullable=False)
    status = Column(Enum(StepStatus), nullable=False, default=StepStatus.PENDING)
    assigned_to = Column(String(64), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    estimated_duration = Column(Float, nullable=True)     # hours
    actual_duration = Column(Float, nullable=True)        # hours

    notes = Column(Text, nullable=True)
    deliverables = Column(JSON, nullable=False, default=list)  # document store references


class PaymentEntry(Base):
    """Append-only payment history row."""
    __tablename__ = "payment_entries"
    __table_args__ = (UniqueConstraint("verification_id", "sequence", name="uq_payment_entries_sequence"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    verification_id = Column(String(40), ForeignKey("verifications.verification_id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by = Column(String(64), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False)
