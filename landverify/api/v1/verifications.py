from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from landverify.database import get_db
from landverify.api.deps import (
    get_current_principal,
    require_permission,
    get_clock,
    get_land_lookup,
)
from landverify.core.clock import Clock
from landverify.core.constants import VerificationStatus, StepName, Urgency
from landverify.schemas.auth import Principal
from landverify.schemas.findings import FindingsUpdate
from landverify.schemas.results import Results
from landverify.schemas.verification import (
    VerificationCreate,
    PaymentCreate,
    RefundRequest,
    WaiveRequest,
    AssignOfficerRequest,
    CompleteStepRequest,
    FailStepRequest,
    ClientUpdateCreate,
    StatusUpdate,
    ReportRequest,
    StepResponse,
    AuditEntryResponse,
    VerificationResponse,
    VerificationBriefResponse,
    PaginatedVerifications,
)
from landverify.services.land_lookup import LandLookup
from landverify.services.verification_service import VerificationService

router = APIRouter(prefix="/verifications", tags=["Verifications"])


def get_verification_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    land_lookup: LandLookup = Depends(get_land_lookup),
) -> VerificationService:
    return VerificationService(db, clock, land_lookup)


def _paginated(items, total: int, page: int, limit: int) -> PaginatedVerifications:
    return PaginatedVerifications(
        items=[VerificationBriefResponse.model_validate(v) for v in items],
        total=total,
        page=page,
        limit=limit,
        has_more=(page * limit) < total,
    )


@router.post("", response_model=VerificationResponse, status_code=201)
async def create_verification(
    body: VerificationCreate,
    principal: Principal = Depends(require_permission("verification:request")),
    service: VerificationService = Depends(get_verification_service),
):
    """Open a verification request for a land record."""
    verification = await service.create_verification(
        principal=principal,
        land_id=body.land_id,
        purpose=body.purpose,
        request_type=body.request_type,
        urgency=body.urgency,
        scope=body.scope,
    )
    return VerificationResponse.from_verification(verification, service.clock.now())


@router.get("/mine", response_model=PaginatedVerifications)
async def get_my_verifications(
    status: Optional[VerificationStatus] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    principal: Principal = Depends(get_current_principal),
    service: VerificationService = Depends(get_verification_service),
):
    items, total = await service.get_user_verifications(
        user_id=principal.id,
        status=status,
        page=page,
        limit=limit,
    )
    return _paginated(items, total, page, limit)


@router.get("", response_model=PaginatedVerifications)
async def get_verification_queue(
    status: Optional[VerificationStatus] = Query(default=None),
    urgency: Optional[Urgency] = Query(default=None),
    overdue_only: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(require_permission("verification:read_any")),
    service: VerificationService = Depends(get_verification_service),
):
    """Work queue for officers, newest first."""
    items, total = await service.get_queue(
        status=status,
        urgency=urgency,
        overdue_only=overdue_only,
        page=page,
        limit=limit,
    )
    return _paginated(items, total, page, limit)


@router.get("/{verification_id}", response_model=VerificationResponse)
async def get_verification(
    verification_id: str,
    principal: Principal = Depends(get_current_principal),
    service: VerificationService = Depends(get_verification_service),
):
    verification = await service.get_verification(verification_id, principal)
    return VerificationResponse.from_verification(verification, service.clock.now())


@router.get("/{verification_id}/audit", response_model=List[AuditEntryResponse])
async def get_audit_trail(
    verification_id: str,
    principal: Principal = Depends(get_current_principal),
    service: VerificationService = Depends(get_verification_service),
):
    entries = await service.get_audit_trail(verification_id, principal)
    return [AuditEntryResponse.model_validate(e) for e in entries]


# === Payments ===

@router.post("/{verification_id}/payments", response_model=VerificationResponse)
async def record_payment(
    verification_id: str,
    body: PaymentCreate,
    principal: Principal = Depends(require_permission("verification:manage_payments")),
    service: VerificationService = Depends(get_verification_service),
):
    """Confirm a payment installment against the fee."""
    verification = await service.record_payment(
        verification_id=verification_id,
        amount=body.amount,
        method=body.method,
        actor=principal,
        reference=body.reference,
        notes=body.notes,
    )
    return VerificationResponse.from_verification(verification, service.clock.now())


@router.post("/{verification_id}/refund", response_model=VerificationResponse)
async def refund_payment(
    verification_id: str,
    body: RefundRequest,
    principal: Principal = Depends(require_permission("verification:manage_payments")),
    service: VerificationService = Depends(get_verification_service),
):
    verification = await service.refund(
        verification_id=verification_id,
        amount=body.amount,
        reason=body.reason,
        actor=principal,
    )
    return VerificationResponse.from_verification(verification, service.clock.now())


@router.post("/{verification_id}/waive", response_model=VerificationResponse)
async def waive_payment(
    verification_id: str,
    body: WaiveRequest,
    principal: Principal = Depends(require_permission("verification:manage_payments")),
    service: VerificationService = Depends(get_verification_service),
):
    verification = await service.waive_payment(verification_id, body.reason, principal)
    return VerificationResponse.from_verification(verification, service.clock.now())


# === Workflow ===

@router.post("/{verification_id}/steps/{step}/assign", response_model=StepResponse)
async def assign_officer(
    verification_id: str,
    step: StepName,
    body: AssignOfficerRequest,
    principal: Principal = Depends(require_permission("verification:assign")),
    service: VerificationService = Depends(get_verification_service),
):
    """Assign an officer to a step; a pending step starts immediately."""
    workflow_step = await service.assign_officer(verification_id, step, body.officer_id, principal)
    return StepResponse.model_validate(workflow_step)


@router.post("/{verification_id}/steps/{step}/complete", response_model=StepResponse)
async def complete_step(
    verification_id: str,
    step: StepName,
    body: CompleteStepRequest,
    principal: Principal = Depends(require_permission("verification:work_step")),
    service: VerificationService = Depends(get_verification_service),
):
    workflow_step = await service.complete_step(
        verification_id=verification_id,
        step_name=step,
        actor=principal,
        notes=body.notes,
        deliverables=body.deliverables,
    )
    return StepResponse.model_validate(workflow_step)


@router.post("/{verification_id}/steps/{step}/fail", response_model=StepResponse)
async def fail_step(
    verification_id: str,
    step: StepName,
    body: FailStepRequest,
    principal: Principal = Depends(require_permission("verification:work_step")),
    service: VerificationService = Depends(get_verification_service),
):
    workflow_step = await service.fail_step(verification_id, step, body.reason, principal)
    return StepResponse.model_validate(workflow_step)


@router.patch("/{verification_id}/status", response_model=VerificationResponse)
async def update_status(
    verification_id: str,
    body: StatusUpdate,
    principal: Principal = Depends(require_permission("verification:update_status")),
    service: VerificationService = Depends(get_verification_service),
):
    verification = await service.update_status(verification_id, body.status, principal, notes=body.notes)
    return VerificationResponse.from_verification(verification, service.clock.now())


@router.post("/{verification_id}/updates", response_model=VerificationResponse)
async def add_client_update(
    verification_id: str,
    body: ClientUpdateCreate,
    principal: Principal = Depends(require_permission("verification:client_update")),
    service: VerificationService = Depends(get_verification_service),
):
    """Send a progress message to the requester."""
    verification = await service.add_client_update(
        verification_id=verification_id,
        update_type=body.update_type,
        message=body.message,
        actor=principal,
    )
    return VerificationResponse.from_verification(verification, service.clock.now())


@router.put("/{verification_id}/findings", response_model=VerificationResponse)
async def update_findings(
    verification_id: str,
    body: FindingsUpdate,
    principal: Principal = Depends(require_permission("verification:update_findings")),
    service: VerificationService = Depends(get_verification_service),
):
    verification = await service.update_findings(verification_id, body, principal)
    return VerificationResponse.from_verification(verification, service.clock.now())


# === Results ===

@router.post("/{verification_id}/score", response_model=Results)
async def compute_score(
    verification_id: str,
    principal: Principal = Depends(require_permission("verification:score")),
    service: VerificationService = Depends(get_verification_service),
):
    """Score the current findings. Requires most of the workflow to be done."""
    return await service.compute_score(verification_id, principal)


@router.post("/{verification_id}/report", response_model=VerificationResponse)
async def generate_report(
    verification_id: str,
    body: ReportRequest,
    principal: Principal = Depends(require_permission("verification:report")),
    service: VerificationService = Depends(get_verification_service),
):
    verification = await service.generate_report(
        verification_id=verification_id,
        actor=principal,
        executive_summary=body.executive_summary,
        recommendations=body.recommendations,
    )
    return VerificationResponse.from_verification(verification, service.clock.now())
