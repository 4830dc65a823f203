"""
Investor onboarding: approving or rejecting onboarding requests, KYC updates.

Approving a request for a user who already has an investor record does not
create a second one; the request is rejected automatically with an
explanatory reason instead.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from settlement.core.exceptions import (
    BusinessRuleViolation,
    ConflictException,
    InvalidTransition,
    NotFoundException,
)
from settlement.models.investor import (
    InvestmentExperience,
    Investor,
    InvestorRequest,
    InvestorStatus,
    KycStatus,
    RequestStatus,
    RiskProfile,
)
from settlement.models.notification import NotificationType
from settlement.models.wallet import FundWallet
from settlement.repositories.investor_repo import InvestorRepository, InvestorRequestRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.services.notifications import NotificationService

logger = logging.getLogger(__name__)

RESOURCE = "Investor request"

RISK_BY_EXPERIENCE = {
    InvestmentExperience.BEGINNER: RiskProfile.CONSERVATIVE,
    InvestmentExperience.INTERMEDIATE: RiskProfile.MODERATE,
    InvestmentExperience.ADVANCED: RiskProfile.AGGRESSIVE,
}


def generate_investor_code() -> str:
    return f"INV{int(time.time() * 1000)}"


@dataclass
class ApprovalOutcome:
    request: InvestorRequest
    investor: Optional[Investor] = None
    duplicate: bool = False


class OnboardingService:
    def __init__(
        self,
        request_repo: InvestorRequestRepository,
        investor_repo: InvestorRepository,
        wallet_repo: WalletRepository,
        notifier: NotificationService,
    ):
        self._request_repo = request_repo
        self._investor_repo = investor_repo
        self._wallet_repo = wallet_repo
        self._notifier = notifier

    async def _get_pending(self, request_id: UUID, target: RequestStatus) -> InvestorRequest:
        request = await self._request_repo.get_fresh(request_id)
        if request is None:
            raise NotFoundException(RESOURCE, request_id)
        if request.status != RequestStatus.PENDING:
            raise InvalidTransition(RESOURCE, request.status.value, target.value)
        return request

    async def approve_request(
        self, request_id: UUID, admin_notes: Optional[str] = None
    ) -> ApprovalOutcome:
        """
        Create the investor and an empty wallet for a pending request.

        If the user already has an investor record the request is rejected
        instead and the outcome is flagged ``duplicate``.
        """
        request = await self._get_pending(request_id, RequestStatus.APPROVED)

        existing = await self._investor_repo.get_by_user(request.user_id)
        if existing:
            request.status = RequestStatus.REJECTED
            request.rejection_reason = (
                "An investor profile already exists for this user "
                f"({existing[0].investor_code}). Duplicate profiles are not allowed."
            )
            request.reviewed_at = datetime.now(timezone.utc)
            request = await self._request_repo.update(request)
            logger.warning(
                "Onboarding request %s auto-rejected: user %s already has investor %s",
                request.id,
                request.user_id,
                existing[0].investor_code,
                extra={"entity_id": str(request.id)},
            )
            await self._notifier.enqueue(
                user_id=request.user_id,
                title="Investor Application Update",
                message=(
                    "Your investor application could not be approved because an "
                    "investor profile already exists for your account."
                ),
                type=NotificationType.WARNING,
                page="investor",
                related_entity_type="investor_request",
                related_entity_id=request.id,
            )
            return ApprovalOutcome(request=request, duplicate=True)

        try:
            investor = await self._investor_repo.create(
                Investor(
                    user_id=request.user_id,
                    investor_code=generate_investor_code(),
                    full_name=request.full_name,
                    email=request.email,
                    mobile_number=request.mobile_number,
                    bank_account_number=request.bank_account_number,
                    bank_ifsc_code=request.bank_ifsc_code,
                    bank_name=request.bank_name,
                    risk_profile=RISK_BY_EXPERIENCE.get(
                        request.investment_experience, RiskProfile.CONSERVATIVE
                    ),
                    kyc_status=KycStatus.PENDING,
                    status=InvestorStatus.ACTIVE,
                )
            )
        except IntegrityError as exc:
            await self._investor_repo.db.rollback()
            logger.warning("IntegrityError creating investor for request %s: %s", request_id, exc)
            raise ConflictException(
                "Investor could not be created (investor code collision). Try again."
            )

        await self._wallet_repo.create(FundWallet(investor_id=investor.id))

        request.status = RequestStatus.APPROVED
        request.admin_notes = admin_notes
        request.reviewed_at = datetime.now(timezone.utc)
        request = await self._request_repo.update(request)
        logger.info(
            "Onboarding request %s approved: investor %s created",
            request.id,
            investor.investor_code,
            extra={"entity_id": str(request.id), "investor_id": str(investor.id)},
        )

        await self._notifier.enqueue(
            user_id=investor.user_id,
            investor_id=investor.id,
            title="Investor Application Approved",
            message=(
                f"Welcome! Your investor profile {investor.investor_code} is active. "
                "Please complete KYC verification to start investing."
            ),
            type=NotificationType.INFO,
            page="investor",
            related_entity_type="investor",
            related_entity_id=investor.id,
        )
        return ApprovalOutcome(request=request, investor=investor)

    async def reject_request(self, request_id: UUID, reason: str) -> InvestorRequest:
        if not reason or not reason.strip():
            raise BusinessRuleViolation("A rejection reason is required")
        request = await self._get_pending(request_id, RequestStatus.REJECTED)

        request.status = RequestStatus.REJECTED
        request.rejection_reason = reason.strip()
        request.reviewed_at = datetime.now(timezone.utc)
        request = await self._request_repo.update(request)
        logger.info("Onboarding request %s rejected", request.id, extra={"entity_id": str(request.id)})

        await self._notifier.enqueue(
            user_id=request.user_id,
            title="Investor Application Rejected",
            message=f"Your investor application has been rejected. Reason: {request.rejection_reason}",
            type=NotificationType.ALERT,
            page="investor",
            related_entity_type="investor_request",
            related_entity_id=request.id,
        )
        return request

    async def update_kyc_status(self, investor_id: UUID, status: KycStatus) -> Investor:
        investor = await self._investor_repo.get_fresh(investor_id)
        if investor is None:
            raise NotFoundException("Investor", investor_id)
        if investor.kyc_status == status:
            return investor

        previous = investor.kyc_status
        investor.kyc_status = status
        investor = await self._investor_repo.update(investor)
        logger.info(
            "Investor %s KYC %s -> %s",
            investor.investor_code,
            previous.value,
            status.value,
            extra={"investor_id": str(investor.id)},
        )

        if status != KycStatus.PENDING:
            verified = status == KycStatus.VERIFIED
            await self._notifier.enqueue(
                user_id=investor.user_id,
                investor_id=investor.id,
                title="KYC Verified" if verified else "KYC Verification Failed",
                message=(
                    "Your KYC documents have been verified."
                    if verified
                    else "Your KYC verification failed. Please re-submit your documents."
                ),
                type=NotificationType.INFO if verified else NotificationType.ALERT,
                page="investor",
                related_entity_type="investor",
                related_entity_id=investor.id,
            )
        return investor
