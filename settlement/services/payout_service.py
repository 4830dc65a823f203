"""
Payout workflow — sending wallet cash to the investor's bank account.

Same state shape as withdrawals, but approval moves no money: the wallet is
only debited when the payout is processed.

Processing takes exactly one of:

- a manual UTR the admin obtained from a bank transfer, or
- a gateway name (``razorpay`` / ``stripe`` / ``cashfree``); the gateway is
  called and must confirm the transfer before the wallet is debited.

All preconditions (status, platform toggle, wallet, balance, gateway
credentials) and the gateway call itself happen before the first ledger
write, so a failure there leaves wallet and audit trail untouched.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID

from settlement.core.exceptions import (
    BusinessRuleViolation,
    InsufficientBalance,
    InvalidTransition,
    NotFoundException,
)
from settlement.core.money import q_money, to_decimal
from settlement.integrations.payment_gateways import (
    PaymentGateway,
    PayoutInstruction,
    get_gateway,
)
from settlement.models.investor import Investor
from settlement.models.notification import NotificationType
from settlement.models.requests import FundPayoutRequest, SettlementStatus
from settlement.models.transaction import FundTransaction, TransactionType
from settlement.repositories.investor_repo import InvestorRepository
from settlement.repositories.payout_repo import PayoutRequestRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.services.notifications import NotificationService
from settlement.services.platform_config import PlatformConfig
from settlement.services.wallet_ledger import WalletLedger

logger = logging.getLogger(__name__)

RESOURCE = "Payout request"

GatewayFactory = Callable[[str, PlatformConfig], PaymentGateway]


class PayoutService:
    def __init__(
        self,
        payout_repo: PayoutRequestRepository,
        wallet_repo: WalletRepository,
        investor_repo: InvestorRepository,
        transaction_repo: TransactionRepository,
        notifier: NotificationService,
        gateway_factory: GatewayFactory = get_gateway,
    ):
        self._payout_repo = payout_repo
        self._wallet_repo = wallet_repo
        self._investor_repo = investor_repo
        self._transaction_repo = transaction_repo
        self._notifier = notifier
        self._gateway_factory = gateway_factory
        self._ledger = WalletLedger(wallet_repo)

    async def list_requests(
        self, status: Optional[SettlementStatus] = None
    ) -> List[FundPayoutRequest]:
        return await self._payout_repo.list_by_status(status)

    async def _get_request(self, request_id: UUID) -> FundPayoutRequest:
        request = await self._payout_repo.get_fresh(request_id)
        if request is None:
            raise NotFoundException(RESOURCE, request_id)
        return request

    async def _get_investor(self, investor_id: UUID) -> Investor:
        investor = await self._investor_repo.get(investor_id)
        if investor is None:
            raise NotFoundException("Investor", investor_id)
        return investor

    async def approve(self, request_id: UUID, admin_notes: Optional[str]) -> FundPayoutRequest:
        request = await self._get_request(request_id)
        if request.status != SettlementStatus.PENDING:
            raise InvalidTransition(RESOURCE, request.status.value, SettlementStatus.APPROVED.value)
        investor = await self._get_investor(request.investor_id)

        request.status = SettlementStatus.APPROVED
        request.admin_notes = admin_notes
        request.reviewed_at = datetime.now(timezone.utc)
        request = await self._payout_repo.update(request)
        amount = q_money(request.requested_amount)
        logger.info("Payout %s approved (₹%s)", request.id, amount, extra={"entity_id": str(request.id)})

        await self._notifier.enqueue(
            user_id=investor.user_id,
            investor_id=investor.id,
            title="Payout Request Approved",
            message=(
                f"Your payout request of ₹{amount:,.2f} has been approved "
                "and will be processed shortly."
            ),
            type=NotificationType.INFO,
            page="wallet",
            related_entity_type="payout",
            related_entity_id=request.id,
        )
        return request

    async def reject(self, request_id: UUID, reason: str) -> FundPayoutRequest:
        if not reason or not reason.strip():
            raise BusinessRuleViolation("A rejection reason is required")
        request = await self._get_request(request_id)
        if request.status not in (SettlementStatus.PENDING, SettlementStatus.APPROVED):
            raise InvalidTransition(RESOURCE, request.status.value, SettlementStatus.REJECTED.value)
        investor = await self._get_investor(request.investor_id)

        request.status = SettlementStatus.REJECTED
        request.rejection_reason = reason.strip()
        request.reviewed_at = datetime.now(timezone.utc)
        request = await self._payout_repo.update(request)
        amount = q_money(request.requested_amount)
        logger.info(
            "Payout %s rejected: %s",
            request.id,
            request.rejection_reason,
            extra={"entity_id": str(request.id)},
        )

        await self._notifier.enqueue(
            user_id=investor.user_id,
            investor_id=investor.id,
            title="Payout Request Rejected",
            message=(
                f"Your payout request of ₹{amount:,.2f} has been rejected. "
                f"Reason: {request.rejection_reason}"
            ),
            type=NotificationType.ALERT,
            page="wallet",
            related_entity_type="payout",
            related_entity_id=request.id,
        )
        return request

    async def process(
        self,
        request_id: UUID,
        config: PlatformConfig,
        utr_number: Optional[str] = None,
        gateway: Optional[str] = None,
    ) -> FundPayoutRequest:
        """
        approved → processed via a manual UTR or a gateway transfer.

        Raises
        ------
        BusinessRuleViolation
            Neither or both of ``utr_number`` / ``gateway`` given, payouts
            disabled, or the gateway rejected the instruction locally.
        InsufficientBalance
            The wallet cannot cover the requested amount.
        GatewayNotConfigured / GatewayError
            The gateway path could not complete the transfer.
        """
        utr = (utr_number or "").strip()
        gateway_name = (gateway or "").strip().lower()
        if bool(utr) == bool(gateway_name):
            raise BusinessRuleViolation(
                "Provide exactly one of a UTR number (manual transfer) or a payment gateway"
            )

        request = await self._get_request(request_id)
        if request.status != SettlementStatus.APPROVED:
            raise InvalidTransition(RESOURCE, request.status.value, SettlementStatus.PROCESSED.value)
        if not config.payouts_enabled:
            raise BusinessRuleViolation("Payouts are currently disabled")

        investor = await self._get_investor(request.investor_id)
        wallet = await self._wallet_repo.get_by_investor(request.investor_id)
        if wallet is None:
            raise NotFoundException("FundWallet for investor", request.investor_id)

        amount = q_money(request.requested_amount)
        available = to_decimal(wallet.available_balance)
        if available < amount:
            raise InsufficientBalance(available, amount)

        payment_method = "bank_transfer"
        reference = utr
        if gateway_name:
            client = self._gateway_factory(gateway_name, config)
            client.ensure_configured()
            result = await client.transfer(
                PayoutInstruction(
                    payout_id=request.id,
                    amount=amount,
                    beneficiary_name=investor.full_name,
                    bank_account_number=request.bank_account_number,
                    bank_ifsc_code=request.bank_ifsc_code,
                    bank_name=request.bank_name,
                    email=investor.email,
                    phone=investor.mobile_number,
                    stripe_account_id=request.stripe_account_id,
                )
            )
            payment_method = client.name
            reference = result.reference_id
            utr = result.utr or ""

        await self._ledger.debit_for_payout(wallet.id, amount)
        await self._transaction_repo.create(
            FundTransaction(
                investor_id=request.investor_id,
                transaction_type=TransactionType.WALLET_WITHDRAWAL,
                amount=amount,
                payment_method=payment_method,
                payment_reference=reference,
                notes=(
                    f"Wallet payout processed - ref: {reference} - "
                    f"transferred to {request.bank_account_number}"
                ),
            )
        )

        request.status = SettlementStatus.PROCESSED
        request.processed_date = datetime.now(timezone.utc)
        request.utr_number = utr or reference
        request.payout_gateway = gateway_name or None
        request = await self._payout_repo.update(request)
        logger.info(
            "Payout %s processed via %s: ₹%s, reference %s",
            request.id,
            payment_method,
            amount,
            reference,
            extra={"entity_id": str(request.id), "investor_id": str(investor.id)},
        )

        await self._notifier.enqueue(
            user_id=investor.user_id,
            investor_id=investor.id,
            title="Payout Processed",
            message=(
                f"Your payout of ₹{amount:,.2f} has been processed. "
                f"Reference: {reference}. Funds will be credited within 1-2 business days."
            ),
            type=NotificationType.TRANSACTION,
            page="wallet",
            related_entity_type="payout",
            related_entity_id=request.id,
        )
        return request
