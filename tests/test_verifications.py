import re
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from landverify.config import settings
from landverify.core.constants import UserRole, PaymentMethod
from landverify.core.exceptions import ConflictError
from landverify.schemas.auth import Principal
from landverify.services.verification_service import VerificationService
from tests.conftest import (
    get_auth_headers,
    create_verification,
    work_step,
    pay_in_full,
    TestSessionLocal,
    CLEAN_FINDINGS,
    LITIGATED_LAND,
)

DEFAULT_STEPS = [
    "document_collection",
    "document_review",
    "data_analysis",
    "report_generation",
    "quality_check",
]


def _parse(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _error_code(response) -> str:
    return response.json()["error"]["code"]


async def _pay(client: AsyncClient, verification_id: str, principal: Principal, amount):
    return await client.post(
        f"/api/v1/verifications/{verification_id}/payments",
        headers=get_auth_headers(principal),
        json={"amount": amount, "method": "bank_transfer", "reference": f"TRX-{amount}"},
    )


async def _audit_actions(client: AsyncClient, verification_id: str, principal: Principal) -> list:
    response = await client.get(
        f"/api/v1/verifications/{verification_id}/audit",
        headers=get_auth_headers(principal),
    )
    assert response.status_code == 200
    entries = response.json()
    assert [e["sequence"] for e in entries] == list(range(1, len(entries) + 1))
    return [e["action"] for e in entries]


@pytest.mark.asyncio
async def test_create_verification(client: AsyncClient, citizen: Principal):
    data = await create_verification(client, citizen)

    assert re.fullmatch(r"VERIFY-\d{13}-[A-Z0-9]{9}", data["verification_id"])
    assert data["reference_number"].startswith("VER-REF-")
    assert data["status"] == "payment_pending"
    assert data["requested_by"] == citizen.id
    assert data["ledger"]["total_amount"] == 5000
    assert data["ledger"]["payment_status"] == "pending"
    assert data["timeline"]["current_sla"] == 72
    assert [s["name"] for s in data["workflow_steps"]] == DEFAULT_STEPS
    assert all(s["status"] == "pending" and s["assigned_to"] is None for s in data["workflow_steps"])
    # seeded from the land registry
    assert data["ownership_details"]["current_owner"] == "Adaeze Okafor"
    assert data["ownership_details"]["owner_registered"] is True
    assert data["completion_progress"] == 0
    assert data["estimated_time_remaining"] == 44  # 8 + 12 + 12 + 8 + 4
    assert data["results"] is None


@pytest.mark.asyncio
async def test_create_verification_unknown_land(client: AsyncClient, citizen: Principal):
    response = await client.post(
        "/api/v1/verifications",
        headers=get_auth_headers(citizen),
        json={"land_id": "LAND-404", "purpose": "purchase"},
    )
    assert response.status_code == 404
    assert _error_code(response) == "NOT_FOUND"


@pytest.mark.asyncio
async def test_create_verification_empty_scope(client: AsyncClient, citizen: Principal):
    response = await client.post(
        "/api/v1/verifications",
        headers=get_auth_headers(citizen),
        json={
            "land_id": "LAND-001",
            "purpose": "purchase",
            "scope": {
                "ownership_verification": False,
                "title_document_check": False,
                "encumbrance_search": False,
                "risk_assessment": False,
            },
        },
    )
    assert response.status_code == 422
    assert _error_code(response) == "INVALID_SCOPE"


@pytest.mark.asyncio
async def test_create_verification_unknown_purpose(client: AsyncClient, citizen: Principal):
    response = await client.post(
        "/api/v1/verifications",
        headers=get_auth_headers(citizen),
        json={"land_id": "LAND-001", "purpose": "speculation"},
    )
    assert response.status_code == 422
    assert _error_code(response) == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_express_happy_path(
    client: AsyncClient, citizen: Principal, officer: Principal, surveyor: Principal
):
    created = await create_verification(client, citizen, urgency="express")
    verification_id = created["verification_id"]
    assert created["ledger"]["total_amount"] == 15000
    assert created["timeline"]["current_sla"] == 24

    response = await _pay(client, verification_id, officer, 15000)
    assert response.status_code == 200
    data = response.json()
    assert data["ledger"]["payment_status"] == "paid"
    assert data["status"] == "in_progress"
    assert _parse(data["timeline"]["expected_completion_date"]) == (
        _parse(data["created_at"]) + timedelta(hours=24)
    )
    assert data["timeline"]["work_started_date"] is not None
    assert data["days_remaining"] == 1
    assert data["is_overdue"] is False

    response = await client.put(
        f"/api/v1/verifications/{verification_id}/findings",
        headers=get_auth_headers(surveyor),
        json=CLEAN_FINDINGS,
    )
    assert response.status_code == 200

    for step in DEFAULT_STEPS[:4]:
        await work_step(client, verification_id, step, officer)

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    assert response.json()["status"] == "quality_review"

    await work_step(client, verification_id, DEFAULT_STEPS[4], officer)

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    data = response.json()
    assert data["status"] == "completed"
    assert data["completion_progress"] == 100
    assert data["estimated_time_remaining"] == 0
    assert data["timeline"]["sla_compliant"] is True
    assert data["timeline"]["actual_completion_date"] is not None
    assert data["results"]["verification_score"] == 98
    assert data["results"]["overall_status"] == "verified"
    assert data["results"]["confidence_level"] == "high"
    assert all(s["completed_at"] is not None for s in data["workflow_steps"])

    response = await client.post(
        f"/api/v1/verifications/{verification_id}/report",
        headers=get_auth_headers(officer),
        json={"executive_summary": "Title is clean and the owner is verified."},
    )
    assert response.status_code == 200
    report = response.json()["report"]
    assert report["report_version"] == 1
    assert report["certificate_issued"] is True
    assert re.fullmatch(r"VC-\d{13}", report["certificate_number"])

    actions = await _audit_actions(client, verification_id, citizen)
    assert actions == [
        "verification_created",
        "payment_recorded",
        "status_changed",
        "findings_updated",
        "officer_assigned", "step_completed",
        "officer_assigned", "step_completed",
        "officer_assigned", "step_completed",
        "officer_assigned", "step_completed", "status_changed",
        "officer_assigned", "step_completed", "status_changed", "score_computed",
        "report_generated",
    ]


@pytest.mark.asyncio
async def test_partial_then_full_payment(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen, urgency="urgent")
    verification_id = created["verification_id"]
    assert created["ledger"]["total_amount"] == 30000

    response = await _pay(client, verification_id, officer, 10000)
    data = response.json()
    assert data["ledger"]["payment_status"] == "partial"
    assert data["ledger"]["balance"] == 20000
    assert data["status"] == "payment_pending"

    response = await _pay(client, verification_id, officer, 20000)
    data = response.json()
    assert data["ledger"]["payment_status"] == "paid"
    assert data["ledger"]["amount_paid"] == 30000
    assert data["ledger"]["balance"] == 0
    assert [p["sequence"] for p in data["ledger"]["payments"]] == [1, 2]
    assert data["status"] == "in_progress"


@pytest.mark.asyncio
async def test_invalid_payment_amount(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]

    for amount in (0, -500):
        response = await _pay(client, verification_id, officer, amount)
        assert response.status_code == 400
        assert _error_code(response) == "INVALID_AMOUNT"

    assert await _audit_actions(client, verification_id, citizen) == ["verification_created"]


@pytest.mark.asyncio
async def test_cent_installments_settle_fee(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]

    for amount in ("4208.53", "719.77"):
        response = await _pay(client, verification_id, officer, amount)
        assert response.json()["ledger"]["payment_status"] == "partial"

    response = await _pay(client, verification_id, officer, "71.70")
    data = response.json()
    assert data["ledger"]["payment_status"] == "paid"
    assert data["ledger"]["amount_paid"] == 5000
    assert data["ledger"]["balance"] == 0
    assert data["status"] == "in_progress"

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    assert [p["amount"] for p in response.json()["ledger"]["payments"]] == [4208.53, 719.77, 71.7]


@pytest.mark.asyncio
async def test_sub_cent_payment_rejected(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]

    response = await _pay(client, verification_id, officer, "0.001")
    assert response.status_code == 422

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    assert response.json()["ledger"]["payments"] == []


@pytest.mark.asyncio
async def test_invalid_transition_rejected(
    client: AsyncClient, citizen: Principal, officer: Principal, monkeypatch
):
    monkeypatch.setattr(settings, "REQUIRE_PAYMENT_BEFORE_WORK", False)
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]
    assert created["status"] == "pending"

    response = await client.patch(
        f"/api/v1/verifications/{verification_id}/status",
        headers=get_auth_headers(officer),
        json={"status": "completed"},
    )
    assert response.status_code == 400
    assert _error_code(response) == "INVALID_TRANSITION"

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    assert response.json()["status"] == "pending"
    assert response.json()["version"] == created["version"]
    assert await _audit_actions(client, verification_id, citizen) == ["verification_created"]


@pytest.mark.asyncio
async def test_manual_status_update(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]

    response = await client.patch(
        f"/api/v1/verifications/{verification_id}/status",
        headers=get_auth_headers(officer),
        json={"status": "cancelled", "notes": "Client withdrew"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["timeline"]["actual_completion_date"] is not None
    assert data["is_overdue"] is False


@pytest.mark.asyncio
async def test_step_monotonicity(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    await pay_in_full(client, created, officer)
    verification_id = created["verification_id"]
    headers = get_auth_headers(officer)
    base = f"/api/v1/verifications/{verification_id}/steps"

    # pending step cannot be completed
    response = await client.post(f"{base}/document_collection/complete", headers=headers, json={})
    assert response.status_code == 409
    assert _error_code(response) == "INVALID_STATE"

    step = await work_step(client, verification_id, "document_collection", officer)
    assert step["status"] == "completed"
    assert step["completed_at"] is not None
    assert step["actual_duration"] == 0
    assert step["deliverables"] == ["doc://document_collection"]

    response = await client.post(f"{base}/document_collection/complete", headers=headers, json={})
    assert response.status_code == 409
    response = await client.post(
        f"{base}/document_collection/assign", headers=headers, json={"officer_id": "officer-2"}
    )
    assert response.status_code == 409

    # not part of the default scope
    response = await client.post(f"{base}/field_verification/assign", headers=headers, json={"officer_id": "x"})
    assert response.status_code == 404

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=headers)
    steps = response.json()["workflow_steps"]
    assert [s["completed_at"] is not None for s in steps] == [s["status"] == "completed" for s in steps]
    assert response.json()["completion_progress"] == 20


@pytest.mark.asyncio
async def test_assign_starts_step(client: AsyncClient, citizen: Principal, officer: Principal, clock):
    created = await create_verification(client, citizen)
    await pay_in_full(client, created, officer)
    verification_id = created["verification_id"]

    response = await client.post(
        f"/api/v1/verifications/{verification_id}/steps/document_review/assign",
        headers=get_auth_headers(officer),
        json={"officer_id": "officer-7"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "in_progress"
    assert data["assigned_to"] == "officer-7"
    assert _parse(data["started_at"]) == clock.now()

    clock.advance(hours=3)
    response = await client.post(
        f"/api/v1/verifications/{verification_id}/steps/document_review/complete",
        headers=get_auth_headers(officer),
        json={},
    )
    assert response.json()["actual_duration"] == 3


@pytest.mark.asyncio
async def test_work_blocked_until_paid(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]
    base = f"/api/v1/verifications/{verification_id}/steps"

    response = await client.post(
        f"{base}/document_collection/assign",
        headers=get_auth_headers(officer),
        json={"officer_id": officer.id},
    )
    assert response.status_code == 409
    assert _error_code(response) == "INVALID_STATE"
    assert response.json()["error"]["details"]["payment_status"] == "pending"

    await _pay(client, verification_id, officer, 2500)
    response = await client.post(
        f"{base}/document_collection/assign",
        headers=get_auth_headers(officer),
        json={"officer_id": officer.id},
    )
    assert response.status_code == 409

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    assert all(s["status"] == "pending" for s in response.json()["workflow_steps"])
    assert await _audit_actions(client, verification_id, citizen) == [
        "verification_created",
        "payment_recorded",
    ]

    await _pay(client, verification_id, officer, 2500)
    step = await work_step(client, verification_id, "document_collection", officer)
    assert step["status"] == "completed"


@pytest.mark.asyncio
async def test_steps_drive_completion_without_payment_gate(
    client: AsyncClient, citizen: Principal, officer: Principal, monkeypatch
):
    monkeypatch.setattr(settings, "REQUIRE_PAYMENT_BEFORE_WORK", False)
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]

    for step in DEFAULT_STEPS:
        await work_step(client, verification_id, step, officer)

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    data = response.json()
    assert data["status"] == "completed"
    assert data["ledger"]["payment_status"] == "pending"
    assert data["results"]["overall_status"] == "inconclusive"


@pytest.mark.asyncio
async def test_failed_step_restarts_on_assign(
    client: AsyncClient, citizen: Principal, officer: Principal, clock
):
    created = await create_verification(client, citizen)
    await pay_in_full(client, created, officer)
    verification_id = created["verification_id"]
    base = f"/api/v1/verifications/{verification_id}/steps/document_review"
    headers = get_auth_headers(officer)

    await client.post(f"{base}/assign", headers=headers, json={"officer_id": "officer-7"})

    response = await client.post(f"{base}/fail", headers=headers, json={"reason": "Deed copy is illegible"})
    assert response.status_code == 200
    step = response.json()
    assert step["status"] == "failed"
    assert step["notes"] == "Deed copy is illegible"
    assert step["completed_at"] is None

    response = await client.post(f"{base}/fail", headers=headers, json={"reason": "Again"})
    assert response.status_code == 409
    response = await client.post(f"{base}/complete", headers=headers, json={})
    assert response.status_code == 409

    clock.advance(hours=2)
    response = await client.post(f"{base}/assign", headers=headers, json={"officer_id": "officer-9"})
    assert response.status_code == 200
    step = response.json()
    assert step["status"] == "in_progress"
    assert step["assigned_to"] == "officer-9"
    assert _parse(step["started_at"]) == clock.now()

    actions = await _audit_actions(client, verification_id, citizen)
    assert actions[-3:] == ["officer_assigned", "step_failed", "officer_assigned"]


@pytest.mark.asyncio
async def test_client_update(client: AsyncClient, citizen: Principal, officer: Principal, clock):
    created = await create_verification(client, citizen)
    url = f"/api/v1/verifications/{created['verification_id']}/updates"

    response = await client.post(
        url,
        headers=get_auth_headers(officer),
        json={"update_type": "additional_requirement", "message": "Please upload the survey plan"},
    )
    assert response.status_code == 200
    updates = response.json()["client_updates"]
    assert len(updates) == 1
    assert updates[0]["update_type"] == "additional_requirement"
    assert updates[0]["sent_by"] == officer.id
    assert _parse(updates[0]["sent_at"]) == clock.now()

    response = await client.post(
        url, headers=get_auth_headers(citizen), json={"update_type": "progress_report", "message": "Hi"}
    )
    assert response.status_code == 403

    response = await client.post(
        url, headers=get_auth_headers(officer), json={"update_type": "gossip", "message": "Hi"}
    )
    assert response.status_code == 422

    actions = await _audit_actions(client, created["verification_id"], citizen)
    assert actions == ["verification_created", "client_update_sent"]


@pytest.mark.asyncio
async def test_scoring_requires_progress(
    client: AsyncClient, citizen: Principal, officer: Principal, surveyor: Principal
):
    created = await create_verification(client, citizen, land_id=LITIGATED_LAND)
    await pay_in_full(client, created, officer)
    verification_id = created["verification_id"]
    assert created["encumbrances"]["has_encumbrances"] is True

    response = await client.put(
        f"/api/v1/verifications/{verification_id}/findings",
        headers=get_auth_headers(surveyor),
        json={"encumbrances": {
            "has_encumbrances": True,
            "legal_cases": [{"case_number": "FHC/L/CS/118/2025", "status": "active"}],
        }},
    )
    assert response.status_code == 200

    for step in DEFAULT_STEPS[:2]:
        await work_step(client, verification_id, step, officer)

    response = await client.post(f"/api/v1/verifications/{verification_id}/score", headers=get_auth_headers(officer))
    assert response.status_code == 412
    assert _error_code(response) == "PRECONDITION_FAILED"

    await work_step(client, verification_id, DEFAULT_STEPS[2], officer)

    response = await client.post(f"/api/v1/verifications/{verification_id}/score", headers=get_auth_headers(officer))
    assert response.status_code == 200
    results = response.json()
    assert results["score_breakdown"]["legal"] == 50
    assert len(results["red_flags"]) == 1
    assert results["red_flags"][0]["severity"] == "high"
    assert results["red_flags"][0]["category"] == "Legal"


@pytest.mark.asyncio
async def test_report_requires_score(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    response = await client.post(
        f"/api/v1/verifications/{created['verification_id']}/report",
        headers=get_auth_headers(officer),
        json={"executive_summary": "Too early"},
    )
    assert response.status_code == 412


@pytest.mark.asyncio
async def test_refund_and_waiver(client: AsyncClient, citizen: Principal, officer: Principal):
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]
    refund_url = f"/api/v1/verifications/{verification_id}/refund"

    response = await client.post(
        refund_url, headers=get_auth_headers(officer), json={"amount": 5000, "reason": "Duplicate request"}
    )
    assert response.status_code == 409

    await _pay(client, verification_id, officer, 5000)

    response = await client.post(
        refund_url, headers=get_auth_headers(citizen), json={"amount": 5000, "reason": "Duplicate request"}
    )
    assert response.status_code == 403

    response = await client.post(
        refund_url, headers=get_auth_headers(officer), json={"amount": 5000, "reason": "Duplicate request"}
    )
    assert response.status_code == 200
    ledger = response.json()["ledger"]
    assert ledger["payment_status"] == "refunded"
    assert ledger["refund_amount"] == 5000

    response = await _pay(client, verification_id, officer, 100)
    assert response.status_code == 409

    waived = await create_verification(client, citizen)
    response = await client.post(
        f"/api/v1/verifications/{waived['verification_id']}/waive",
        headers=get_auth_headers(officer),
        json={"reason": "Court-ordered verification"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["ledger"]["payment_status"] == "waived"
    assert data["status"] == "in_progress"


@pytest.mark.asyncio
async def test_access_control(
    client: AsyncClient, citizen: Principal, other_citizen: Principal, officer: Principal, surveyor: Principal
):
    created = await create_verification(client, citizen)
    url = f"/api/v1/verifications/{created['verification_id']}"

    response = await client.get(url)
    assert response.status_code == 401
    assert _error_code(response) == "UNAUTHORIZED"

    response = await client.get(url, headers=get_auth_headers(other_citizen))
    assert response.status_code == 403
    assert _error_code(response) == "FORBIDDEN"

    response = await _pay(client, created["verification_id"], other_citizen, 1000)
    assert response.status_code == 403

    # requesters cannot confirm their own payments
    response = await _pay(client, created["verification_id"], citizen, 1000)
    assert response.status_code == 403

    court = Principal(id="court-1", role=UserRole.COURT)
    response = await client.get(url, headers=get_auth_headers(court))
    assert response.status_code == 200

    response = await client.get("/api/v1/verifications", headers=get_auth_headers(citizen))
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/verifications",
        headers=get_auth_headers(surveyor),
        json={"land_id": "LAND-001", "purpose": "purchase"},
    )
    assert response.status_code == 403

    response = await client.patch(
        f"{url}/status", headers=get_auth_headers(surveyor), json={"status": "cancelled"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_mine_and_queue(
    client: AsyncClient, citizen: Principal, other_citizen: Principal, officer: Principal
):
    await create_verification(client, citizen)
    await create_verification(client, citizen, urgency="urgent")
    await create_verification(client, other_citizen)

    response = await client.get("/api/v1/verifications/mine", headers=get_auth_headers(citizen))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert all(v["requested_by"] == citizen.id for v in data["items"])

    response = await client.get("/api/v1/verifications", headers=get_auth_headers(officer))
    assert response.json()["total"] == 3

    response = await client.get(
        "/api/v1/verifications", headers=get_auth_headers(officer), params={"urgency": "urgent"}
    )
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_stale_write_raises_conflict(
    client: AsyncClient, citizen: Principal, officer: Principal, clock, land_lookup
):
    created = await create_verification(client, citizen)
    verification_id = created["verification_id"]

    async with TestSessionLocal() as first, TestSessionLocal() as second:
        stale = VerificationService(second, clock, land_lookup)
        # keep the version 1 row in the second session identity map
        stale_row = await stale.get_verification(verification_id, citizen)
        assert stale_row.version == 1

        fresh = VerificationService(first, clock, land_lookup)
        await fresh.record_payment(verification_id, 1000, PaymentMethod.CASH, officer)
        await first.commit()

        with pytest.raises(ConflictError):
            await stale.record_payment(verification_id, 2000, PaymentMethod.CASH, officer)
        await second.rollback()

    response = await client.get(f"/api/v1/verifications/{verification_id}", headers=get_auth_headers(citizen))
    ledger = response.json()["ledger"]
    assert ledger["amount_paid"] == 1000
    assert len(ledger["payments"]) == 1


def test_service_requires_land_lookup(clock):
    with pytest.raises(TypeError):
        VerificationService(None, clock)
