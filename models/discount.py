"""
Discount related data models
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any

from .money import ZERO, HUNDRED


class DiscountStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass
class ActiveDiscount:
    """Per-product discount granted to a customer"""
    id: str
    product_id: str
    status: DiscountStatus
    requested_discount_percent: Decimal
    approved_discount_percent: Optional[Decimal] = None
    expires_at: Optional[datetime] = None
    user_id: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_applicable(self, product_id: str, now: datetime) -> bool:
        return (
            self.product_id == product_id
            and self.status == DiscountStatus.APPROVED
            and not self.is_expired(now)
        )

    def effective_percent(self) -> Decimal:
        """Approved percent, falling back to the requested one, clamped to 0-100"""
        percent = self.approved_discount_percent
        if percent is None:
            percent = self.requested_discount_percent
        return min(max(percent, ZERO), HUNDRED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "productId": self.product_id,
            "status": self.status.value,
            "requestedDiscountPercent": str(self.requested_discount_percent),
            "approvedDiscountPercent": (
                str(self.approved_discount_percent)
                if self.approved_discount_percent is not None else None
            ),
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None
        }
