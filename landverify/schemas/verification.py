from typing import Annotated, Optional, List, Any, Dict
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from landverify.core.clock import ensure_utc
from landverify.core.constants import (
    RequestType, Purpose, Urgency, VerificationStatus, StepName, StepStatus,
    PaymentStatus, PaymentMethod, ClientUpdateType,
)
from landverify.schemas.findings import (
    OwnershipDetails, TitleVerification, Encumbrances, PhysicalVerification,
)
from landverify.schemas.results import Results

# Rendered as a JSON number
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# === Requests ===
class VerificationScope(BaseModel):
    """Activities included in the verification"""
    model_config = ConfigDict(extra="forbid")

    ownership_verification: bool = True
    title_document_check: bool = True
    encumbrance_search: bool = True
    physical_inspection: bool = False
    market_valuation: bool = False
    legal_compliance_check: bool = False
    risk_assessment: bool = True


class VerificationCreate(BaseModel):
    land_id: str = Field(..., min_length=1, max_length=64)
    request_type: RequestType = RequestType.OWNERSHIP_CHECK
    purpose: Purpose
    urgency: Urgency = Urgency.STANDARD
    scope: VerificationScope = Field(default_factory=VerificationScope)


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., max_digits=12, decimal_places=2, description="Amount paid (NGN)")
    method: PaymentMethod = PaymentMethod.MANUAL
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class RefundRequest(BaseModel):
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    reason: str = Field(..., min_length=3, max_length=1000)


class WaiveRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=1000)


class AssignOfficerRequest(BaseModel):
    officer_id: str = Field(..., min_length=1, max_length=64)


class CompleteStepRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)
    deliverables: List[str] = Field(default=[], description="Document store references")


class FailStepRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=2000)


class ClientUpdateCreate(BaseModel):
    update_type: ClientUpdateType
    message: str = Field(..., min_length=1, max_length=2000)


class StatusUpdate(BaseModel):
    status: VerificationStatus
    notes: Optional[str] = Field(default=None, max_length=2000)


class ReportRequest(BaseModel):
    executive_summary: str = Field(..., min_length=3, max_length=5000)
    recommendations: List[str] = []


# === Responses ===
class StepResponse(BaseModel):
    name: StepName
    status: StepStatus
    assigned_to: Optional[str]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    estimated_duration: Optional[float]
    actual_duration: Optional[float]
    notes: Optional[str]
    deliverables: List[str] = []

    model_config = {"from_attributes": True}


class PaymentEntryResponse(BaseModel):
    sequence: int
    amount: Money
    method: PaymentMethod
    reference: Optional[str]
    notes: Optional[str]
    recorded_by: str
    paid_at: datetime

    model_config = {"from_attributes": True}


class LedgerState(BaseModel):
    total_amount: Money
    amount_paid: Money
    balance: Money
    payment_status: PaymentStatus
    refund_amount: Optional[Money] = None
    payments: List[PaymentEntryResponse] = []

    @classmethod
    def from_verification(cls, verification) -> "LedgerState":
        paid = verification.amount_paid
        return cls(
            total_amount=verification.total_amount,
            amount_paid=paid,
            balance=max(verification.total_amount - paid, Decimal("0")),
            payment_status=verification.payment_status,
            refund_amount=verification.refund_amount,
            payments=[PaymentEntryResponse.model_validate(p) for p in verification.payments],
        )


class AuditEntryResponse(BaseModel):
    sequence: int
    action: str
    performed_by: str
    timestamp: datetime
    details: Optional[Dict[str, Any]] = None

    model_config = {"from_attributes": True}


class ReportMetadata(BaseModel):
    report_version: int
    generated_at: datetime
    generated_by: str
    executive_summary: str
    recommendations: List[str] = []
    certificate_issued: bool = False
    certificate_number: Optional[str] = None
    certificate_valid_until: Optional[datetime] = None


class ClientUpdate(BaseModel):
    """Message sent to the requester"""
    update_type: ClientUpdateType
    message: str
    sent_by: str
    sent_at: datetime


class Timeline(BaseModel):
    request_date: datetime
    work_started_date: Optional[datetime]
    field_work_date: Optional[datetime]
    draft_report_date: Optional[datetime]
    quality_check_date: Optional[datetime]
    expected_completion_date: Optional[datetime]
    actual_completion_date: Optional[datetime]
    current_sla: int
    sla_compliant: Optional[bool]
    overdue_flagged_at: Optional[datetime]


class VerificationBriefResponse(BaseModel):
    verification_id: str
    reference_number: str
    land_id: str
    requested_by: str
    urgency: Urgency
    status: VerificationStatus
    payment_status: PaymentStatus
    expected_completion_date: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class VerificationResponse(BaseModel):
    verification_id: str
    reference_number: str
    land_id: str
    requested_by: str
    request_type: RequestType
    purpose: Purpose
    urgency: Urgency
    scope: VerificationScope
    status: VerificationStatus
    ledger: LedgerState
    workflow_steps: List[StepResponse]
    timeline: Timeline
    ownership_details: OwnershipDetails
    title_verification: TitleVerification
    encumbrances: Encumbrances
    physical_verification: PhysicalVerification
    results: Optional[Results]
    scored_at: Optional[datetime]
    report: Optional[ReportMetadata]
    client_updates: List[ClientUpdate]
    completion_progress: float
    estimated_time_remaining: float
    is_overdue: bool
    days_remaining: Optional[int]
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_verification(cls, v, now: datetime) -> "VerificationResponse":
        days_remaining = None
        if v.expected_completion_date is not None:
            seconds = (ensure_utc(v.expected_completion_date) - now).total_seconds()
            days_remaining = -int(-seconds // 86400)  # ceil
        return cls(
            verification_id=v.verification_id,
            reference_number=v.reference_number,
            land_id=v.land_id,
            requested_by=v.requested_by,
            request_type=v.request_type,
            purpose=v.purpose,
            urgency=v.urgency,
            scope=v.scope,
            status=v.status,
            ledger=LedgerState.from_verification(v),
            workflow_steps=[StepResponse.model_validate(s) for s in v.steps],
            timeline=Timeline(
                request_date=v.created_at,
                work_started_date=v.work_started_date,
                field_work_date=v.field_work_date,
                draft_report_date=v.draft_report_date,
                quality_check_date=v.quality_check_date,
                expected_completion_date=v.expected_completion_date,
                actual_completion_date=v.actual_completion_date,
                current_sla=v.current_sla,
                sla_compliant=v.sla_compliant,
                overdue_flagged_at=v.overdue_flagged_at,
            ),
            ownership_details=v.ownership_details or {},
            title_verification=v.title_verification or {},
            encumbrances=v.encumbrances or {},
            physical_verification=v.physical_verification or {},
            results=v.results,
            scored_at=v.scored_at,
            report=v.report,
            client_updates=v.client_updates or [],
            completion_progress=v.completion_progress,
            estimated_time_remaining=v.estimated_time_remaining,
            is_overdue=v.is_overdue(now),
            days_remaining=days_remaining,
            version=v.version,
            created_at=v.created_at,
            updated_at=v.updated_at,
        )


class PaginatedVerifications(BaseModel):
    items: List[VerificationBriefResponse]
    total: int
    page: int
    limit: int
    has_more: bool
