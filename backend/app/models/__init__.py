# Import models here so Alembic can discover metadata.
from app.models.user import User  # noqa: F401
from app.models.platform_membership import PlatformMembership  # noqa: F401
from app.models.platform_setting import PlatformSetting  # noqa: F401

# Creator program
from app.models.cmo_profile import CMOProfile  # noqa: F401
from app.models.cmo_payout import CMOPayout  # noqa: F401
from app.models.creator_profile import CreatorProfile  # noqa: F401
from app.models.commission_tier import CommissionTier  # noqa: F401
from app.models.discount_code import DiscountCode  # noqa: F401
from app.models.user_attribution import UserAttribution  # noqa: F401

# Money: attributions (credits) and payouts (debits)
from app.models.payment_attribution import PaymentAttribution  # noqa: F401
from app.models.creator_ledger_entry import CreatorLedgerEntry  # noqa: F401
from app.models.withdrawal_method import WithdrawalMethod  # noqa: F401
from app.models.withdrawal_request import WithdrawalRequest  # noqa: F401

# Personnel requests
from app.models.head_ops_request import HeadOpsRequest  # noqa: F401
