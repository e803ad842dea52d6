"""
Store configuration data models
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any

from .money import ZERO, money_str


@dataclass(frozen=True)
class ShippingPolicy:
    """Store-wide shipping configuration; read-only during a computation"""
    delivery_enabled: bool = True
    fee_per_kg: Decimal = ZERO
    minimum_consolidated_fee: Decimal = ZERO
    packaging_fee: Decimal = ZERO
    free_shipping_threshold: Optional[Decimal] = None
    delivery_fee: Optional[Decimal] = None


@dataclass
class StoreSettings:
    """Store settings editable from the admin panel"""
    shipping: ShippingPolicy = field(default_factory=ShippingPolicy)
    pickup_enabled: bool = True
    min_order_amount: Optional[Decimal] = None
    max_order_amount: Optional[Decimal] = None
    primary_currency: str = "USD"
    exchange_rate_ves: Decimal = ZERO
    exchange_rate_eur: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "deliveryEnabled": self.shipping.delivery_enabled,
            "deliveryFeeUSD": money_str(self.shipping.delivery_fee),
            "freeDeliveryThresholdUSD": money_str(self.shipping.free_shipping_threshold),
            "feePerKg": money_str(self.shipping.fee_per_kg),
            "minimumConsolidatedFee": money_str(self.shipping.minimum_consolidated_fee),
            "packagingFee": money_str(self.shipping.packaging_fee),
            "pickupEnabled": self.pickup_enabled,
            "minOrderAmountUSD": money_str(self.min_order_amount),
            "maxOrderAmountUSD": money_str(self.max_order_amount),
            "primaryCurrency": self.primary_currency,
            "exchangeRateVES": str(self.exchange_rate_ves),
            "exchangeRateEUR": str(self.exchange_rate_eur)
        }
