import enum


class UserRole(str, enum.Enum):
    """Roles issued by the identity provider."""
    ADMIN = "admin"
    GOVERNMENT = "government"     # verification officers
    CITIZEN = "citizen"
    AGENT = "agent"
    COURT = "court"
    SURVEYOR = "surveyor"         # field inspection


class RequestType(str, enum.Enum):
    OWNERSHIP_CHECK = "ownership_check"
    TITLE_VERIFICATION = "title_verification"
    ENCUMBRANCE_CHECK = "encumbrance_check"
    DUE_DILIGENCE = "due_diligence"
    PRE_PURCHASE = "pre_purchase"
    LEGAL_COMPLIANCE = "legal_compliance"
    MARKET_VALUATION = "market_valuation"


class Purpose(str, enum.Enum):
    PURCHASE = "purchase"
    INVESTMENT = "investment"
    LEGAL_PROCEEDINGS = "legal_proceedings"
    DUE_DILIGENCE = "due_diligence"
    MORTGAGE = "mortgage"
    INSURANCE = "insurance"
    INHERITANCE = "inheritance"
    COURT_CASE = "court_case"
    TAX_ASSESSMENT = "tax_assessment"
    OTHER = "other"


class Urgency(str, enum.Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    URGENT = "urgent"


class VerificationStatus(str, enum.Enum):
    """Workflow statuses of a verification."""
    PENDING = "pending"
    PAYMENT_PENDING = "payment_pending"
    IN_PROGRESS = "in_progress"
    FIELD_WORK = "field_work"
    ANALYSIS = "analysis"
    QUALITY_REVIEW = "quality_review"
    COMPLETED = "completed"
    DENIED = "denied"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({
    VerificationStatus.COMPLETED,
    VerificationStatus.DENIED,
    VerificationStatus.EXPIRED,
    VerificationStatus.CANCELLED,
})


class StepName(str, enum.Enum):
    DOCUMENT_COLLECTION = "document_collection"
    DOCUMENT_REVIEW = "document_review"
    FIELD_VERIFICATION = "field_verification"
    DATA_ANALYSIS = "data_analysis"
    REPORT_GENERATION = "report_generation"
    QUALITY_CHECK = "quality_check"


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class ClientUpdateType(str, enum.Enum):
    STATUS_CHANGE = "status_change"
    PROGRESS_REPORT = "progress_report"
    ISSUE_NOTIFICATION = "issue_notification"
    COMPLETION_NOTICE = "completion_notice"
    ADDITIONAL_REQUIREMENT = "additional_requirement"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"
    WAIVED = "waived"


class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"
    CASH = "cash"
    CHECK = "check"
    MOBILE_MONEY = "mobile_money"
    MANUAL = "manual"


class OverallStatus(str, enum.Enum):
    VERIFIED = "verified"
    VERIFIED_WITH_CAUTION = "verified_with_caution"
    INCONCLUSIVE = "inconclusive"
    NOT_VERIFIED = "not_verified"


class ConfidenceLevel(str, enum.Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FlagSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationEvent(str, enum.Enum):
    VERIFICATION_CREATED = "verification_created"
    PAYMENT_RECORDED = "payment_recorded"
    PAYMENT_REFUNDED = "payment_refunded"
    STATUS_CHANGED = "status_changed"
    STEP_COMPLETED = "step_completed"
    VERIFICATION_COMPLETED = "verification_completed"
    REPORT_REQUESTED = "report_requested"
    REPORT_GENERATED = "report_generated"
    CLIENT_UPDATE = "client_update"
    OVERDUE = "overdue"


# Fees (NGN)
BASE_VERIFICATION_FEE = 5000
URGENCY_SURCHARGES = {
    Urgency.STANDARD: 0,
    Urgency.EXPRESS: 10000,
    Urgency.URGENT: 25000,
}

# SLA in hours, fixed per urgency tier
SLA_HOURS = {
    Urgency.STANDARD: 72,
    Urgency.EXPRESS: 24,
    Urgency.URGENT: 4,
}

# Estimated hours per workflow step
STEP_ESTIMATED_HOURS = {
    StepName.DOCUMENT_COLLECTION: 8,
    StepName.DOCUMENT_REVIEW: 12,
    StepName.FIELD_VERIFICATION: 24,
    StepName.DATA_ANALYSIS: 12,
    StepName.REPORT_GENERATION: 8,
    StepName.QUALITY_CHECK: 4,
}

# Score weights (must sum to 1)
SCORE_WEIGHTS = {
    "ownership": 0.25,
    "documentation": 0.30,
    "legal": 0.20,
    "physical": 0.25,
}

# (minimum score, overall status, confidence), evaluated top-down
SCORE_THRESHOLDS = [
    (80, OverallStatus.VERIFIED, ConfidenceLevel.HIGH),
    (60, OverallStatus.VERIFIED_WITH_CAUTION, ConfidenceLevel.MEDIUM),
    (40, OverallStatus.INCONCLUSIVE, ConfidenceLevel.LOW),
    (0, OverallStatus.NOT_VERIFIED, ConfidenceLevel.VERY_LOW),
]

# Auto-progression and scoring thresholds (fraction of completed steps)
QUALITY_REVIEW_THRESHOLD = 0.8
ANALYSIS_THRESHOLD = 0.6
SCORING_MIN_COMPLETION = 0.6

CERTIFICATE_VALIDITY_DAYS = 365
