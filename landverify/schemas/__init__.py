from landverify.schemas.auth import Principal
from landverify.schemas.findings import (
    VerificationFindings,
    FindingsUpdate,
    OwnershipDetails,
    TitleVerification,
    Encumbrances,
    PhysicalVerification,
)
from landverify.schemas.results import Results, ScoreBreakdown, RedFlag, GreenFlag
from landverify.schemas.verification import (
    VerificationScope,
    VerificationCreate,
    PaymentCreate,
    RefundRequest,
    WaiveRequest,
    AssignOfficerRequest,
    CompleteStepRequest,
    FailStepRequest,
    ClientUpdateCreate,
    ClientUpdate,
    StatusUpdate,
    ReportRequest,
    StepResponse,
    LedgerState,
    AuditEntryResponse,
    ReportMetadata,
    VerificationResponse,
    VerificationBriefResponse,
    PaginatedVerifications,
)

__all__ = [
    # Auth
    "Principal",
    # Findings
    "VerificationFindings",
    "FindingsUpdate",
    "OwnershipDetails",
    "TitleVerification",
    "Encumbrances",
    "PhysicalVerification",
    # Results
    "Results",
    "ScoreBreakdown",
    "RedFlag",
    "GreenFlag",
    # Verification
    "VerificationScope",
    "VerificationCreate",
    "PaymentCreate",
    "RefundRequest",
    "WaiveRequest",
    "AssignOfficerRequest",
    "CompleteStepRequest",
    "FailStepRequest",
    "ClientUpdateCreate",
    "ClientUpdate",
    "StatusUpdate",
    "ReportRequest",
    "StepResponse",
    "LedgerState",
    "AuditEntryResponse",
    "ReportMetadata",
    "VerificationResponse",
    "VerificationBriefResponse",
    "PaginatedVerifications",
]
