"""
Customer wallet data models
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any

from .money import ZERO, money_str


@dataclass
class UserBalance:
    """Wallet balance of one customer"""
    user_id: str
    balance: Decimal = ZERO
    total_recharges: Decimal = ZERO
    total_spent: Decimal = ZERO
    currency: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "userId": self.user_id,
            "balance": money_str(self.balance),
            "totalRecharges": money_str(self.total_recharges),
            "totalSpent": money_str(self.total_spent),
            "currency": self.currency
        }


@dataclass
class TermsAcceptance:
    """Signed acceptance of the wallet terms and conditions"""
    user_id: str
    id_number: str
    signature_data: str
    terms_version: str
    accepted_at: str
    phone: Optional[str] = None
    address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "acceptedAt": self.accepted_at,
            "termsVersion": self.terms_version
        }


class GiftCardStatus(Enum):
    ACTIVE = "ACTIVE"
    REDEEMED = "REDEEMED"
    CANCELLED = "CANCELLED"


@dataclass
class GiftCard:
    """Gift card bought with wallet balance"""
    id: str
    code: str
    amount: Decimal
    balance: Decimal
    purchaser_id: str
    recipient_email: str
    status: GiftCardStatus
    created_at: str
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "code": self.code,
            "amountUSD": money_str(self.amount),
            "balanceUSD": money_str(self.balance),
            "recipientEmail": self.recipient_email,
            "status": self.status.value,
            "message": self.message,
            "createdAt": self.created_at
        }
