"""Typed findings recorded during a verification.

Each section is stored as JSON on the verification row and is always
validated through these models on the way in and on the way out.
"""
import enum
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Finding(BaseModel):
    model_config = ConfigDict(extra="forbid")


# === Ownership ===
class OwnershipType(str, enum.Enum):
    INDIVIDUAL = "individual"
    JOINT = "joint"
    CORPORATE = "corporate"
    GOVERNMENT = "government"
    TRADITIONAL = "traditional"
    FAMILY = "family"
    TRUST = "trust"
    COOPERATIVE = "cooperative"
    PARTNERSHIP = "partnership"


class OwnershipDetails(_Finding):
    current_owner: Optional[str] = Field(default=None, max_length=200)
    ownership_type: Optional[OwnershipType] = None
    acquisition_date: Optional[date] = None
    owner_registered: bool = False
    owner_verified: bool = False
    ownership_percentage: Optional[float] = Field(default=None, gt=0, le=100)


# === Title documents ===
class CertificateStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"
    SUSPENDED = "suspended"
    PENDING_RENEWAL = "pending_renewal"
    NOT_FOUND = "not_found"


class CertificateOfOccupancy(_Finding):
    exists: bool = False
    number: Optional[str] = Field(default=None, max_length=100)
    issue_date: Optional[date] = None
    issuing_authority: Optional[str] = Field(default=None, max_length=200)
    status: Optional[CertificateStatus] = None
    verified: bool = False


class DeedOfAssignment(_Finding):
    exists: bool = False
    registered: bool = False
    registration_number: Optional[str] = Field(default=None, max_length=100)
    stamp_duty_paid: bool = False
    verified: bool = False


class SurveyPlan(_Finding):
    exists: bool = False
    survey_number: Optional[str] = Field(default=None, max_length=100)
    surveyor: Optional[str] = Field(default=None, max_length=200)
    coordinates_verified: bool = False
    boundary_disputes: bool = False


class TitleVerification(_Finding):
    certificate_of_occupancy: CertificateOfOccupancy = Field(default_factory=CertificateOfOccupancy)
    deed_of_assignment: DeedOfAssignment = Field(default_factory=DeedOfAssignment)
    survey_plan: SurveyPlan = Field(default_factory=SurveyPlan)


# === Encumbrances ===
class LegalCaseStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    ADJOURNED = "adjourned"
    CLOSED = "closed"
    DISMISSED = "dismissed"
    SETTLED = "settled"


ACTIVE_CASE_STATUSES = {LegalCaseStatus.ACTIVE, LegalCaseStatus.PENDING, LegalCaseStatus.ADJOURNED}


class MortgageStatus(str, enum.Enum):
    ACTIVE = "active"
    DISCHARGED = "discharged"
    DEFAULTED = "defaulted"
    FORECLOSURE = "foreclosure"
    RESTRUCTURED = "restructured"


class LegalCase(_Finding):
    case_number: str = Field(..., max_length=100)
    court: Optional[str] = Field(default=None, max_length=200)
    subject: Optional[str] = Field(default=None, max_length=500)
    status: LegalCaseStatus = LegalCaseStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_CASE_STATUSES


class Mortgage(_Finding):
    lender: str = Field(..., max_length=200)
    amount: Optional[float] = Field(default=None, ge=0)
    status: MortgageStatus = MortgageStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status != MortgageStatus.DISCHARGED


class Lien(_Finding):
    creditor: str = Field(..., max_length=200)
    amount: Optional[float] = Field(default=None, ge=0)
    reason: Optional[str] = Field(default=None, max_length=500)


class GovernmentAcquisition(_Finding):
    pending: bool = False
    purpose: Optional[str] = Field(default=None, max_length=500)


class Encumbrances(_Finding):
    has_encumbrances: bool = False
    mortgages: List[Mortgage] = []
    liens: List[Lien] = []
    legal_cases: List[LegalCase] = []
    government_acquisition: GovernmentAcquisition = Field(default_factory=GovernmentAcquisition)

    @property
    def active_legal_cases(self) -> List[LegalCase]:
        return [c for c in self.legal_cases if c.is_active]

    @property
    def active_mortgages(self) -> List[Mortgage]:
        return [m for m in self.mortgages if m.is_active]

    @property
    def any_encumbrance(self) -> bool:
        return bool(
            self.has_encumbrances
            or self.active_legal_cases
            or self.active_mortgages
            or self.liens
            or self.government_acquisition.pending
        )


# === Physical inspection ===
class PhysicalFindings(_Finding):
    land_exists: bool = True
    boundaries_match: bool = False
    no_encroachment: bool = True
    accessible_by_road: Optional[bool] = None
    observations: Optional[str] = Field(default=None, max_length=2000)
    discrepancies: List[str] = []


class PhysicalVerification(_Finding):
    conducted: bool = False
    verification_date: Optional[date] = None
    verified_by: Optional[str] = Field(default=None, max_length=64)
    findings: PhysicalFindings = Field(default_factory=PhysicalFindings)


class VerificationFindings(_Finding):
    """Everything the scoring engine reads."""
    ownership_details: OwnershipDetails = Field(default_factory=OwnershipDetails)
    title_verification: TitleVerification = Field(default_factory=TitleVerification)
    encumbrances: Encumbrances = Field(default_factory=Encumbrances)
    physical_verification: PhysicalVerification = Field(default_factory=PhysicalVerification)


class FindingsUpdate(_Finding):
    """Partial update: each provided section replaces the stored one."""
    ownership_details: Optional[OwnershipDetails] = None
    title_verification: Optional[TitleVerification] = None
    encumbrances: Optional[Encumbrances] = None
    physical_verification: Optional[PhysicalVerification] = None
