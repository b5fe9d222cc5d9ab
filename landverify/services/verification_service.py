import logging
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Tuple, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from landverify.config import settings
from landverify.core.clock import Clock
from landverify.core.constants import (
    RequestType, Purpose, Urgency, VerificationStatus, StepName, StepStatus,
    PaymentStatus, PaymentMethod, NotificationEvent, OverallStatus, ClientUpdateType,
    TERMINAL_STATUSES, SCORING_MIN_COMPLETION, CERTIFICATE_VALIDITY_DAYS,
)
from landverify.core.exceptions import (
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
    PreconditionFailedError,
    ValidationError,
    ConflictError,
)
from landverify.core.permissions import has_permission
from landverify.core.security import generate_id
from landverify.models.audit import AuditEntry
from landverify.models.verification import Verification, WorkflowStep, PaymentEntry
from landverify.schemas.auth import Principal
from landverify.schemas.findings import (
    VerificationFindings, FindingsUpdate, OwnershipDetails, TitleVerification,
    Encumbrances, PhysicalVerification,
)
from landverify.schemas.results import Results
from landverify.schemas.verification import VerificationScope, ReportMetadata
from landverify.services import payment_ledger, workflow_service
from landverify.services.audit_service import AuditService
from landverify.services.land_lookup import LandLookup
from landverify.services.notification_service import NotificationService
from landverify.services.scoring_service import compute_score

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def findings_of(verification: Verification) -> VerificationFindings:
    return VerificationFindings(
        ownership_details=verification.ownership_details or {},
        title_verification=verification.title_verification or {},
        encumbrances=verification.encumbrances or {},
        physical_verification=verification.physical_verification or {},
    )


class VerificationService:
    """
    Operations on the verification aggregate.

    Every public mutation validates first, then mutates, appends its audit
    entry and flushes once. The request's session commits or rolls back the
    whole operation.
    """

    def __init__(self, db: AsyncSession, clock: Clock, land_lookup: LandLookup):
        self.db = db
        self.clock = clock
        self.land_lookup = land_lookup
        self.audit = AuditService()
        self.notifications = NotificationService(db)

    # === Loading / persistence ===

    async def _load(self, verification_id: str, for_update: bool = True) -> Verification:
        query = select(Verification).where(Verification.verification_id == verification_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        verification = result.scalar_one_or_none()
        if not verification:
            raise NotFoundError("Verification", verification_id)
        return verification

    async def _save(self, verification: Verification) -> None:
        verification.updated_at = self.clock.now()
        try:
            await self.db.flush()
        except StaleDataError:
            logger.warning(f"Concurrent modification of {verification.verification_id}")
            raise ConflictError(verification.verification_id)

    def _emit(self, verification: Verification, event: NotificationEvent, **payload) -> None:
        self.notifications.emit(
            event,
            now=self.clock.now(),
            verification_id=verification.verification_id,
            recipient_id=verification.requested_by,
            payload=payload,
        )

    def _ensure_access(self, verification: Verification, principal: Principal, action: str) -> None:
        """The requester always has access to their own verification."""
        if verification.requested_by != principal.id and not has_permission(principal.role, action):
            raise ForbiddenError("You cannot access another client's verification")

    # === Workflow transitions ===

    def _transition(
        self,
        verification: Verification,
        new_status: VerificationStatus,
        actor: str,
        notes: Optional[str] = None,
        trigger: str = "manual",
    ) -> None:
        now = self.clock.now()
        previous = workflow_service.apply_status(verification, new_status, now)
        self.audit.record(
            verification,
            action="status_changed",
            performed_by=actor,
            now=now,
            details={
                "previous_status": previous.value,
                "new_status": new_status.value,
                "trigger": trigger,
                "notes": notes,
            },
        )
        self._emit(
            verification,
            NotificationEvent.STATUS_CHANGED,
            previous_status=previous.value,
            new_status=new_status.value,
        )
        if new_status == VerificationStatus.COMPLETED:
            self._on_completed(verification)

    def _on_completed(self, verification: Verification) -> None:
        if verification.results is None:
            self._score(verification, SYSTEM_ACTOR)
        results = verification.results or {}
        self._emit(
            verification,
            NotificationEvent.VERIFICATION_COMPLETED,
            overall_status=results.get("overall_status"),
            verification_score=results.get("verification_score"),
            sla_compliant=verification.sla_compliant,
        )
        self._emit(
            verification,
            NotificationEvent.REPORT_REQUESTED,
            certificate_eligible=results.get("overall_status") == OverallStatus.VERIFIED.value,
        )

    def _score(self, verification: Verification, actor: str) -> Results:
        now = self.clock.now()
        results = compute_score(findings_of(verification))
        verification.results = results.model_dump(mode="json")
        verification.scored_at = now
        self.audit.record(
            verification,
            action="score_computed",
            performed_by=actor,
            now=now,
            details={
                "verification_score": results.verification_score,
                "overall_status": results.overall_status.value,
                "red_flags": len(results.red_flags),
            },
        )
        return results

    # === Creation ===

    async def create_verification(
        self,
        principal: Principal,
        land_id: str,
        purpose: Purpose,
        request_type: RequestType = RequestType.OWNERSHIP_CHECK,
        urgency: Urgency = Urgency.STANDARD,
        scope: Optional[VerificationScope] = None,
    ) -> Verification:
        scope = scope or VerificationScope()
        step_definitions = workflow_service.initialize_steps(scope)

        facts = await self.land_lookup.get_land_facts(land_id)
        if facts is None:
            raise NotFoundError("Land", land_id)

        now = self.clock.now()
        status = (
            VerificationStatus.PAYMENT_PENDING
            if settings.REQUIRE_PAYMENT_BEFORE_WORK
            else VerificationStatus.PENDING
        )
        has_encumbrances = bool(
            facts.has_encumbrances or facts.active_legal_cases or facts.active_mortgages
        )

        verification = Verification(
            verification_id=generate_id("VERIFY", now),
            reference_number=generate_id("VER-REF", now, suffix_length=6),
            land_id=land_id,
            requested_by=principal.id,
            request_type=request_type,
            purpose=purpose,
            urgency=urgency,
            scope=scope.model_dump(),
            total_amount=payment_ledger.calculate_total_amount(urgency),
            payment_status=PaymentStatus.PENDING,
            status=status,
            current_sla=workflow_service.sla_hours(urgency),
            ownership_details=OwnershipDetails(
                current_owner=facts.current_owner,
                owner_registered=facts.owner_registered,
            ).model_dump(mode="json"),
            title_verification=TitleVerification().model_dump(mode="json"),
            encumbrances=Encumbrances(has_encumbrances=has_encumbrances).model_dump(mode="json"),
            physical_verification=PhysicalVerification().model_dump(mode="json"),
            client_updates=[],
            audit_sequence=0,
            created_at=now,
            updated_at=now,
        )
        verification.steps = [WorkflowStep(deliverables=[], **definition) for definition in step_definitions]
        verification.payments = []
        self.db.add(verification)

        self.audit.record(
            verification,
            action="verification_created",
            performed_by=principal.id,
            now=now,
            details={
                "land_id": land_id,
                "urgency": urgency.value,
                "total_amount": str(verification.total_amount),
                "steps": [d["name"].value for d in step_definitions],
            },
        )
        self._emit(
            verification,
            NotificationEvent.VERIFICATION_CREATED,
            reference_number=verification.reference_number,
            total_amount=str(verification.total_amount),
        )
        await self._save(verification)
        logger.info(f"Verification {verification.verification_id} created for land {land_id}")
        return verification

    # === Payment ledger ===

    async def record_payment(
        self,
        verification_id: str,
        amount: Decimal,
        method: PaymentMethod,
        actor: Principal,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Verification:
        verification = await self._load(verification_id)
        amount = payment_ledger.to_money(amount)
        payment_ledger.validate_payment(amount, verification.payment_status)

        now = self.clock.now()
        previous_status = verification.payment_status
        verification.payments.append(PaymentEntry(
            sequence=len(verification.payments) + 1,
            amount=amount,
            method=method,
            reference=reference,
            notes=notes,
            recorded_by=actor.id,
            paid_at=now,
        ))
        verification.payment_status = payment_ledger.derive_payment_status(
            verification.total_amount,
            [p.amount for p in verification.payments],
            previous_status,
        )

        self.audit.record(
            verification,
            action="payment_recorded",
            performed_by=actor.id,
            now=now,
            details={
                "amount": str(amount),
                "method": method.value,
                "reference": reference,
                "amount_paid": str(verification.amount_paid),
                "payment_status": verification.payment_status.value,
            },
        )
        self._emit(
            verification,
            NotificationEvent.PAYMENT_RECORDED,
            amount=str(amount),
            payment_status=verification.payment_status.value,
        )

        became_paid = (
            previous_status != PaymentStatus.PAID
            and verification.payment_status == PaymentStatus.PAID
        )
        if became_paid and verification.status == VerificationStatus.PAYMENT_PENDING:
            self._transition(
                verification, VerificationStatus.IN_PROGRESS, SYSTEM_ACTOR, trigger="payment_completed"
            )

        await self._save(verification)
        return verification

    async def refund(
        self,
        verification_id: str,
        amount: Decimal,
        reason: str,
        actor: Principal,
    ) -> Verification:
        verification = await self._load(verification_id)
        amount = payment_ledger.to_money(amount)
        payment_ledger.validate_refund(amount, verification.payment_status, verification.amount_paid)

        now = self.clock.now()
        verification.payment_status = PaymentStatus.REFUNDED
        verification.refund_amount = amount
        verification.refund_reason = reason
        verification.refund_date = now

        self.audit.record(
            verification,
            action="payment_refunded",
            performed_by=actor.id,
            now=now,
            details={"amount": str(amount), "reason": reason},
        )
        self._emit(verification, NotificationEvent.PAYMENT_REFUNDED, amount=str(amount), reason=reason)
        await self._save(verification)
        return verification

    async def waive_payment(self, verification_id: str, reason: str, actor: Principal) -> Verification:
        verification = await self._load(verification_id)
        payment_ledger.validate_waiver(verification.payment_status)

        now = self.clock.now()
        verification.payment_status = PaymentStatus.WAIVED
        verification.waiver_reason = reason
        self.audit.record(
            verification,
            action="payment_waived",
            performed_by=actor.id,
            now=now,
            details={"reason": reason},
        )
        if verification.status == VerificationStatus.PAYMENT_PENDING:
            self._transition(
                verification, VerificationStatus.IN_PROGRESS, SYSTEM_ACTOR, trigger="payment_waived"
            )

        await self._save(verification)
        return verification

    # === Workflow steps ===

    def _get_step(self, verification: Verification, step_name: StepName) -> WorkflowStep:
        step = verification.get_step(step_name)
        if step is None:
            raise NotFoundError("Workflow step", step_name.value)
        return step

    def _ensure_open(self, verification: Verification) -> None:
        if verification.is_terminal:
            raise InvalidStateError(
                f"Verification is {verification.status.value}",
                details={"status": verification.status.value},
            )

    def _ensure_workable(self, verification: Verification) -> None:
        self._ensure_open(verification)
        if verification.status == VerificationStatus.PAYMENT_PENDING:
            raise InvalidStateError(
                "Work cannot start before the fee is paid",
                details={
                    "status": verification.status.value,
                    "payment_status": verification.payment_status.value,
                },
            )

    async def assign_officer(
        self,
        verification_id: str,
        step_name: StepName,
        officer_id: str,
        actor: Principal,
    ) -> WorkflowStep:
        verification = await self._load(verification_id)
        step = self._get_step(verification, step_name)
        if step.status in (StepStatus.COMPLETED, StepStatus.SKIPPED):
            raise InvalidStateError(
                f"Step {step_name.value} is already {step.status.value}",
                details={"step": step_name.value, "status": step.status.value},
            )
        self._ensure_workable(verification)

        now = self.clock.now()
        previous_officer = step.assigned_to
        step.assigned_to = officer_id
        if step.status in (StepStatus.PENDING, StepStatus.FAILED):
            step.status = StepStatus.IN_PROGRESS
            step.started_at = now

        self.audit.record(
            verification,
            action="officer_assigned",
            performed_by=actor.id,
            now=now,
            details={
                "step": step_name.value,
                "officer_id": officer_id,
                "previous_officer": previous_officer,
            },
        )
        await self._save(verification)
        return step

    async def complete_step(
        self,
        verification_id: str,
        step_name: StepName,
        actor: Principal,
        notes: Optional[str] = None,
        deliverables: Optional[List[str]] = None,
    ) -> WorkflowStep:
        verification = await self._load(verification_id)
        step = self._get_step(verification, step_name)
        if step.status != StepStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Step {step_name.value} is {step.status.value}, not in progress",
                details={"step": step_name.value, "status": step.status.value},
            )
        self._ensure_workable(verification)

        now = self.clock.now()
        step.status = StepStatus.COMPLETED
        step.completed_at = now
        step.actual_duration = workflow_service.duration_hours(step.started_at, now)
        step.notes = notes
        step.deliverables = list(deliverables or [])

        self.audit.record(
            verification,
            action="step_completed",
            performed_by=actor.id,
            now=now,
            details={"step": step_name.value, "notes": notes, "deliverables": step.deliverables},
        )
        self._emit(verification, NotificationEvent.STEP_COMPLETED, step=step_name.value)

        next_status = workflow_service.next_auto_status(
            verification.status, [s.status for s in verification.steps]
        )
        if next_status is not None:
            self._transition(verification, next_status, SYSTEM_ACTOR, trigger="auto_progress")

        await self._save(verification)
        return step

    async def fail_step(
        self,
        verification_id: str,
        step_name: StepName,
        reason: str,
        actor: Principal,
    ) -> WorkflowStep:
        """Mark an in-progress step as failed. Assigning it again restarts it."""
        verification = await self._load(verification_id)
        step = self._get_step(verification, step_name)
        if step.status != StepStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Step {step_name.value} is {step.status.value}, not in progress",
                details={"step": step_name.value, "status": step.status.value},
            )
        self._ensure_open(verification)

        now = self.clock.now()
        step.status = StepStatus.FAILED
        step.notes = reason

        self.audit.record(
            verification,
            action="step_failed",
            performed_by=actor.id,
            now=now,
            details={"step": step_name.value, "reason": reason, "assigned_to": step.assigned_to},
        )
        await self._save(verification)
        return step

    async def update_status(
        self,
        verification_id: str,
        new_status: VerificationStatus,
        actor: Principal,
        notes: Optional[str] = None,
    ) -> Verification:
        verification = await self._load(verification_id)
        workflow_service.validate_transition(verification.status, new_status)

        self._transition(verification, new_status, actor.id, notes=notes)
        await self._save(verification)
        return verification

    async def add_client_update(
        self,
        verification_id: str,
        update_type: ClientUpdateType,
        message: str,
        actor: Principal,
    ) -> Verification:
        verification = await self._load(verification_id)

        now = self.clock.now()
        update = {
            "update_type": update_type.value,
            "message": message,
            "sent_by": actor.id,
            "sent_at": now.isoformat(),
        }
        # JSON column: assign a new list so the change is tracked
        verification.client_updates = [*(verification.client_updates or []), update]

        self.audit.record(
            verification,
            action="client_update_sent",
            performed_by=actor.id,
            now=now,
            details={"update_type": update_type.value},
        )
        self._emit(
            verification,
            NotificationEvent.CLIENT_UPDATE,
            update_type=update_type.value,
            message=message,
        )
        await self._save(verification)
        return verification

    # === Findings, scoring, report ===

    async def update_findings(
        self,
        verification_id: str,
        update: FindingsUpdate,
        actor: Principal,
    ) -> Verification:
        verification = await self._load(verification_id)
        sections = update.model_dump(exclude_none=True)
        if not sections:
            raise ValidationError("No findings supplied")
        self._ensure_open(verification)

        now = self.clock.now()
        for section in sections:
            setattr(verification, section, getattr(update, section).model_dump(mode="json"))

        self.audit.record(
            verification,
            action="findings_updated",
            performed_by=actor.id,
            now=now,
            details={"sections": sorted(sections)},
        )
        await self._save(verification)
        return verification

    async def compute_score(self, verification_id: str, actor: Principal) -> Results:
        verification = await self._load(verification_id)
        if verification.status in TERMINAL_STATUSES - {VerificationStatus.COMPLETED}:
            raise PreconditionFailedError(
                f"Cannot score a {verification.status.value} verification",
                details={"status": verification.status.value},
            )
        progress = verification.completion_progress / 100
        if progress < SCORING_MIN_COMPLETION:
            raise PreconditionFailedError(
                "Not enough workflow steps completed to score this verification",
                details={
                    "completion_progress": verification.completion_progress,
                    "required": SCORING_MIN_COMPLETION * 100,
                },
            )

        results = self._score(verification, actor.id)
        await self._save(verification)
        return results

    async def generate_report(
        self,
        verification_id: str,
        actor: Principal,
        executive_summary: str,
        recommendations: Optional[List[str]] = None,
    ) -> Verification:
        verification = await self._load(verification_id)
        if verification.results is None:
            raise PreconditionFailedError("The verification has not been scored yet")

        now = self.clock.now()
        previous_version = (verification.report or {}).get("report_version", 0)
        report = ReportMetadata(
            report_version=previous_version + 1,
            generated_at=now,
            generated_by=actor.id,
            executive_summary=executive_summary,
            recommendations=recommendations or [],
        )
        if verification.results.get("overall_status") == OverallStatus.VERIFIED.value:
            report.certificate_issued = True
            report.certificate_number = f"VC-{int(now.timestamp() * 1000)}"
            report.certificate_valid_until = now + timedelta(days=CERTIFICATE_VALIDITY_DAYS)
        verification.report = report.model_dump(mode="json")

        self.audit.record(
            verification,
            action="report_generated",
            performed_by=actor.id,
            now=now,
            details={
                "report_version": report.report_version,
                "certificate_issued": report.certificate_issued,
            },
        )
        self._emit(
            verification,
            NotificationEvent.REPORT_GENERATED,
            report_version=report.report_version,
            certificate_number=report.certificate_number,
        )
        await self._save(verification)
        return verification

    # === Queries ===

    async def get_verification(self, verification_id: str, principal: Principal) -> Verification:
        verification = await self._load(verification_id, for_update=False)
        self._ensure_access(verification, principal, "verification:read_any")
        return verification

    async def get_audit_trail(self, verification_id: str, principal: Principal) -> List[AuditEntry]:
        verification = await self.get_verification(verification_id, principal)
        return sorted(verification.audit_entries, key=lambda e: e.sequence)

    async def get_user_verifications(
        self,
        user_id: str,
        status: Optional[VerificationStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Verification], int]:
        query = select(Verification).where(Verification.requested_by == user_id)
        if status:
            query = query.where(Verification.status == status)
        return await self._paginate(query, page, limit)

    async def get_queue(
        self,
        status: Optional[VerificationStatus] = None,
        urgency: Optional[Urgency] = None,
        overdue_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Verification], int]:
        query = select(Verification)
        if status:
            query = query.where(Verification.status == status)
        if urgency:
            query = query.where(Verification.urgency == urgency)
        if overdue_only:
            query = query.where(
                Verification.status.not_in(list(TERMINAL_STATUSES)),
                Verification.expected_completion_date < self.clock.now(),
            )
        return await self._paginate(query, page, limit)

    async def _paginate(self, query, page: int, limit: int) -> Tuple[List[Verification], int]:
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar()

        query = query.order_by(Verification.created_at.desc())
        query = query.offset((page - 1) * limit).limit(limit)

        result = await self.db.execute(query)
        items = list(result.scalars().all())
        return items, total
