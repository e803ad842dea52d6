"""
Wallet transaction and payment verification data models
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any

from .money import money_str
from .order import PaymentMethod

# Reference stored on a recharge created before the payer knows the bank reference
PENDING_VERIFICATION = "PENDING_VERIFICATION"

# Methods the bank can confirm in real time
AUTO_VERIFIABLE_METHODS = frozenset({PaymentMethod.MOBILE_PAYMENT})


class TransactionType(Enum):
    RECHARGE = "RECHARGE"
    PURCHASE = "PURCHASE"
    GIFT_CARD = "GIFT_CARD"


class TransactionStatus(Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


@dataclass
class RechargeTransaction:
    """Wallet transaction; recharges go PENDING -> [VERIFIED ->] APPROVED or REJECTED"""
    id: str
    user_id: str
    amount: Decimal
    payment_method: Optional[PaymentMethod]
    reference_code: Optional[str]
    status: TransactionStatus
    transaction_type: TransactionType = TransactionType.RECHARGE
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    def awaiting_credit(self) -> bool:
        # 아직 잔액에 반영되지 않은 충전 (검토 대상)
        return self.status in (TransactionStatus.PENDING, TransactionStatus.VERIFIED)

    def awaiting_reference(self) -> bool:
        return self.reference_code == PENDING_VERIFICATION

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "type": self.transaction_type.value,
            "amount": money_str(self.amount),
            "paymentMethod": self.payment_method.value if self.payment_method else None,
            "reference": self.reference_code,
            "status": self.status.value,
            "description": self.description,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at
        }


@dataclass
class CompanyPaymentMethod:
    """Payment rail the store accepts, with display metadata"""
    id: str
    type: PaymentMethod
    name: str
    bank_name: Optional[str] = None
    phone: Optional[str] = None
    holder_id: Optional[str] = None
    holder_name: Optional[str] = None
    email: Optional[str] = None
    wallet_address: Optional[str] = None
    network: Optional[str] = None
    display_note: Optional[str] = None
    qr_code_image: Optional[str] = None
    is_active: bool = True

    @property
    def supports_auto_verification(self) -> bool:
        return self.type in AUTO_VERIFIABLE_METHODS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "bankName": self.bank_name,
            "phone": self.phone,
            "holderId": self.holder_id,
            "holderName": self.holder_name,
            "email": self.email,
            "walletAddress": self.wallet_address,
            "network": self.network,
            "displayNote": self.display_note,
            "qrCodeImage": self.qr_code_image,
            "isActive": self.is_active,
            "autoVerification": self.supports_auto_verification
        }


class VerificationOutcome(Enum):
    CONFIRMED = "CONFIRMED"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    REJECTED = "REJECTED"


@dataclass
class VerificationRequest:
    """Data the payer declares for a mobile payment"""
    payer_phone: str
    bank_code: str
    reference: str
    payment_date: date
    amount: Decimal
    payer_id_number: Optional[str] = None


@dataclass
class VerificationResult:
    """Answer of the payment verification collaborator"""
    outcome: VerificationOutcome
    code: int
    message: str
    verified_amount: Optional[Decimal] = None

    @property
    def verified(self) -> bool:
        return self.outcome == VerificationOutcome.CONFIRMED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "verified": self.verified,
            "code": self.code,
            "message": self.message,
            "amount": money_str(self.verified_amount)
        }
