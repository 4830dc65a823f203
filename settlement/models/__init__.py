"""SQLModel table models — import here so metadata is populated."""

from settlement.models.allocation import AllocationStatus, FundAllocation  # noqa: F401
from settlement.models.investor import (  # noqa: F401
    Investor,
    InvestorRequest,
    InvestorStatus,
    KycStatus,
    RequestStatus,
)
from settlement.models.notification import DeliveryStatus, Notification  # noqa: F401
from settlement.models.plan import FundPlan, PayoutFrequency  # noqa: F401
from settlement.models.requests import (  # noqa: F401
    FundPayoutRequest,
    FundWithdrawalRequest,
    SettlementStatus,
    WithdrawalType,
)
from settlement.models.setting import PlatformSetting  # noqa: F401
from settlement.models.transaction import (  # noqa: F401
    FundTransaction,
    TransactionStatus,
    TransactionType,
)
from settlement.models.wallet import FundWallet  # noqa: F401
