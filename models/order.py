"""
Order related data models
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Dict, Any
from enum import Enum

from .money import ZERO, money_str


class OrderStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class DeliveryMethod(Enum):
    PICKUP = "PICKUP"
    HOME_DELIVERY = "HOME_DELIVERY"
    SHIPPING = "SHIPPING"


class PaymentMethod(Enum):
    WALLET = "WALLET"
    MOBILE_PAYMENT = "MOBILE_PAYMENT"
    BANK_TRANSFER = "BANK_TRANSFER"
    ZELLE = "ZELLE"
    CRYPTO = "CRYPTO"
    CASH = "CASH"


@dataclass(frozen=True)
class OrderTotals:
    """Derived order amounts; recomputed, never mutated"""
    subtotal: Decimal = ZERO
    discount_total: Decimal = ZERO
    shipping_fee: Decimal = ZERO
    grand_total: Decimal = ZERO
    applied_discount_ids: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount_total),
            "shipping": money_str(self.shipping_fee),
            "total": money_str(self.grand_total),
            "appliedDiscountIds": list(self.applied_discount_ids)
        }


@dataclass
class OrderItem:
    """Order item data model"""
    order_item_id: str
    order_id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "orderItemId": self.order_item_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "pricePerUnit": money_str(self.unit_price),
            "subtotal": money_str(self.line_total)
        }


@dataclass
class Order:
    """Order data model"""
    order_id: str
    order_number: str
    user_id: str
    totals: OrderTotals
    payment_method: PaymentMethod
    delivery_method: DeliveryMethod
    status: OrderStatus
    created_at: str
    items: List[OrderItem] = field(default_factory=list)
    paid_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "id": self.order_id,
            "orderNumber": self.order_number,
            "userId": self.user_id,
            "paymentMethod": self.payment_method.value,
            "deliveryMethod": self.delivery_method.value,
            "status": self.status.value,
            "createdAt": self.created_at,
            "paidAt": self.paid_at,
            "items": [item.to_dict() for item in self.items]
        }
        result.update(self.totals.to_dict())
        return result
