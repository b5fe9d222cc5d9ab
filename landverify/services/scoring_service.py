"""Multi-factor verification scoring.

Everything here is a pure function of `VerificationFindings`; the same
findings always produce the same `Results`.
"""
import math
from typing import Callable, List, Optional, Tuple

from landverify.core.constants import (
    SCORE_WEIGHTS, SCORE_THRESHOLDS, FlagSeverity, OverallStatus, ConfidenceLevel,
)
from landverify.schemas.findings import (
    VerificationFindings, OwnershipDetails, TitleVerification, Encumbrances,
    PhysicalVerification, CertificateStatus,
)
from landverify.schemas.results import Results, ScoreBreakdown, RedFlag, GreenFlag


def _clamp(score: int) -> int:
    return max(0, min(score, 100))


def ownership_score(details: OwnershipDetails) -> int:
    if not details.owner_verified:
        return 40
    score = 85
    if details.owner_registered:
        score += 15
    return _clamp(score)


def documentation_score(title: TitleVerification) -> int:
    score = 0
    if title.certificate_of_occupancy.exists:
        score += 40
    if title.certificate_of_occupancy.verified:
        score += 20
    if title.deed_of_assignment.exists:
        score += 25
    if title.survey_plan.exists:
        score += 15
    return _clamp(score)


def legal_score(encumbrances: Encumbrances) -> int:
    score = 100
    if encumbrances.any_encumbrance:
        score -= 30
    if encumbrances.active_legal_cases:
        score -= 20
    if encumbrances.active_mortgages:
        score -= 15
    return _clamp(score)


def physical_score(physical: PhysicalVerification) -> int:
    if not physical.conducted:
        return 50
    score = 75
    if physical.findings.boundaries_match:
        score += 15
    if not physical.findings.no_encroachment:
        score -= 20
    return _clamp(score)


def classify(verification_score: int) -> Tuple[OverallStatus, ConfidenceLevel]:
    for minimum, overall, confidence in SCORE_THRESHOLDS:
        if verification_score >= minimum:
            return overall, confidence
    return OverallStatus.NOT_VERIFIED, ConfidenceLevel.VERY_LOW


# === Flag rules ===
# Each rule inspects the findings and returns a flag or None.

def _legal_case_flag(f: VerificationFindings) -> Optional[RedFlag]:
    if f.encumbrances.active_legal_cases:
        return RedFlag(
            severity=FlagSeverity.HIGH,
            category="Legal",
            description="Active legal cases associated with the property.",
            recommendation="Thorough legal review required before proceeding.",
        )
    return None


def _government_acquisition_flag(f: VerificationFindings) -> Optional[RedFlag]:
    if f.encumbrances.government_acquisition.pending:
        return RedFlag(
            severity=FlagSeverity.CRITICAL,
            category="Acquisition",
            description="A government acquisition notice is pending on the land.",
            recommendation="Confirm the acquisition status with the land registry.",
        )
    return None


def _mortgage_flag(f: VerificationFindings) -> Optional[RedFlag]:
    if f.encumbrances.active_mortgages:
        return RedFlag(
            severity=FlagSeverity.MEDIUM,
            category="Financial",
            description="The land is pledged as security for an active mortgage.",
            recommendation="Obtain a discharge or lender consent before transfer.",
        )
    return None


def _revoked_certificate_flag(f: VerificationFindings) -> Optional[RedFlag]:
    c_of_o = f.title_verification.certificate_of_occupancy
    if c_of_o.exists and c_of_o.status in (CertificateStatus.REVOKED, CertificateStatus.SUSPENDED):
        return RedFlag(
            severity=FlagSeverity.CRITICAL,
            category="Documentation",
            description=f"Certificate of Occupancy is {c_of_o.status.value}.",
            recommendation="Do not proceed until the certificate is reinstated.",
        )
    return None


def _encroachment_flag(f: VerificationFindings) -> Optional[RedFlag]:
    physical = f.physical_verification
    if physical.conducted and not physical.findings.no_encroachment:
        return RedFlag(
            severity=FlagSeverity.HIGH,
            category="Physical",
            description="Encroachment was found during the site inspection.",
            recommendation="Resolve the encroachment before completing any transaction.",
        )
    return None


RED_FLAG_RULES: List[Callable[[VerificationFindings], Optional[RedFlag]]] = [
    _legal_case_flag,
    _government_acquisition_flag,
    _mortgage_flag,
    _revoked_certificate_flag,
    _encroachment_flag,
]


def _owner_flag(f: VerificationFindings) -> Optional[GreenFlag]:
    owner = f.ownership_details
    if owner.owner_verified and owner.owner_registered:
        return GreenFlag(category="Ownership", description="Owner verified and registered.")
    return None


def _certificate_flag(f: VerificationFindings) -> Optional[GreenFlag]:
    c_of_o = f.title_verification.certificate_of_occupancy
    if c_of_o.exists and c_of_o.verified:
        return GreenFlag(category="Documentation", description="Certificate of Occupancy verified.")
    return None


def _clean_title_flag(f: VerificationFindings) -> Optional[GreenFlag]:
    if not f.encumbrances.any_encumbrance:
        return GreenFlag(category="Legal", description="No encumbrances found.")
    return None


def _boundaries_flag(f: VerificationFindings) -> Optional[GreenFlag]:
    physical = f.physical_verification
    if physical.conducted and physical.findings.boundaries_match and physical.findings.no_encroachment:
        return GreenFlag(category="Physical", description="Boundaries match the survey with no encroachment.")
    return None


GREEN_FLAG_RULES: List[Callable[[VerificationFindings], Optional[GreenFlag]]] = [
    _owner_flag,
    _certificate_flag,
    _clean_title_flag,
    _boundaries_flag,
]


def compute_score(findings: VerificationFindings) -> Results:
    """Calculate the weighted verification score (0-100) and classify it."""
    breakdown = ScoreBreakdown(
        ownership=ownership_score(findings.ownership_details),
        documentation=documentation_score(findings.title_verification),
        legal=legal_score(findings.encumbrances),
        physical=physical_score(findings.physical_verification),
    )
    weighted = (
        breakdown.ownership * SCORE_WEIGHTS["ownership"]
        + breakdown.documentation * SCORE_WEIGHTS["documentation"]
        + breakdown.legal * SCORE_WEIGHTS["legal"]
        + breakdown.physical * SCORE_WEIGHTS["physical"]
    )
    # half-up rounding
    verification_score = _clamp(int(math.floor(weighted + 0.5)))
    overall_status, confidence = classify(verification_score)

    return Results(
        score_breakdown=breakdown,
        verification_score=verification_score,
        overall_status=overall_status,
        confidence_level=confidence,
        red_flags=[flag for flag in (rule(findings) for rule in RED_FLAG_RULES) if flag],
        green_flags=[flag for flag in (rule(findings) for rule in GREEN_FLAG_RULES) if flag],
    )
