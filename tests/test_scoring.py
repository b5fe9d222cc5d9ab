from landverify.core.constants import FlagSeverity, OverallStatus, ConfidenceLevel
from landverify.schemas.findings import VerificationFindings
from landverify.services.scoring_service import (
    compute_score,
    classify,
    legal_score,
    ownership_score,
    documentation_score,
    physical_score,
)
from tests.conftest import CLEAN_FINDINGS


def _findings(**sections) -> VerificationFindings:
    return VerificationFindings.model_validate(sections)


def test_empty_findings_score():
    results = compute_score(VerificationFindings())
    # 40*0.25 + 0*0.30 + 100*0.20 + 50*0.25 = 42.5, rounded half-up
    assert results.score_breakdown.ownership == 40
    assert results.score_breakdown.documentation == 0
    assert results.score_breakdown.legal == 100
    assert results.score_breakdown.physical == 50
    assert results.verification_score == 43
    assert results.overall_status == OverallStatus.INCONCLUSIVE
    assert results.confidence_level == ConfidenceLevel.LOW


def test_clean_findings_verified():
    results = compute_score(_findings(**CLEAN_FINDINGS))
    # 100*0.25 + 100*0.30 + 100*0.20 + 90*0.25 = 97.5
    assert results.verification_score == 98
    assert results.overall_status == OverallStatus.VERIFIED
    assert results.confidence_level == ConfidenceLevel.HIGH
    assert results.red_flags == []
    assert {f.category for f in results.green_flags} == {"Ownership", "Documentation", "Legal", "Physical"}


def test_one_active_legal_case_red_flag():
    findings = _findings(encumbrances={
        "legal_cases": [{"case_number": "FHC/L/CS/118/2025", "status": "active"}],
    })
    results = compute_score(findings)

    assert results.score_breakdown.legal == 50  # 100 - 30 - 20
    assert len(results.red_flags) == 1
    assert results.red_flags[0].severity == FlagSeverity.HIGH
    assert results.red_flags[0].category == "Legal"


def test_closed_legal_case_is_not_active():
    findings = _findings(encumbrances={
        "legal_cases": [{"case_number": "FHC/L/CS/9/2020", "status": "settled"}],
    })
    assert legal_score(findings.encumbrances) == 100
    assert compute_score(findings).red_flags == []


def test_legal_score_with_case_and_mortgage():
    findings = _findings(encumbrances={
        "legal_cases": [{"case_number": "C-1", "status": "adjourned"}],
        "mortgages": [{"lender": "First Bank", "status": "active"}],
    })
    assert legal_score(findings.encumbrances) == 35  # 100 - 30 - 20 - 15

    categories = [f.category for f in compute_score(findings).red_flags]
    assert categories == ["Legal", "Financial"]


def test_partial_score_components():
    findings = _findings(**CLEAN_FINDINGS)
    assert ownership_score(findings.ownership_details) == 100
    assert documentation_score(findings.title_verification) == 100
    assert physical_score(findings.physical_verification) == 90

    findings.ownership_details.owner_registered = False
    assert ownership_score(findings.ownership_details) == 85


def test_encroachment_lowers_physical_score():
    findings = _findings(physical_verification={
        "conducted": True,
        "findings": {"boundaries_match": True, "no_encroachment": False},
    })
    assert physical_score(findings.physical_verification) == 70
    assert [f.category for f in compute_score(findings).red_flags] == ["Physical"]


def test_revoked_certificate_is_critical():
    findings = _findings(title_verification={
        "certificate_of_occupancy": {"exists": True, "status": "revoked"},
    })
    flags = compute_score(findings).red_flags
    assert len(flags) == 1
    assert flags[0].severity == FlagSeverity.CRITICAL


def test_classify_boundaries():
    assert classify(80) == (OverallStatus.VERIFIED, ConfidenceLevel.HIGH)
    assert classify(79) == (OverallStatus.VERIFIED_WITH_CAUTION, ConfidenceLevel.MEDIUM)
    assert classify(60) == (OverallStatus.VERIFIED_WITH_CAUTION, ConfidenceLevel.MEDIUM)
    assert classify(40) == (OverallStatus.INCONCLUSIVE, ConfidenceLevel.LOW)
    assert classify(39) == (OverallStatus.NOT_VERIFIED, ConfidenceLevel.VERY_LOW)


def test_score_is_deterministic():
    findings = _findings(**CLEAN_FINDINGS)
    assert compute_score(findings) == compute_score(findings)
