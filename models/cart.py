"""
Cart related data models
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Dict, Any

from .money import ZERO, money_str
from .product import ProductType


@dataclass
class CartLineItem:
    """One cart line; a denomination of a digital product is its own line"""
    id: str
    name: str
    unit_price: Decimal
    quantity: int
    product_type: ProductType = ProductType.PHYSICAL
    weight_kg: Decimal = ZERO
    is_consolidable: bool = True
    fixed_shipping_cost: Decimal = ZERO
    product_id: Optional[str] = None
    stock: Optional[int] = None

    def __post_init__(self):
        if self.product_id is None:
            self.product_id = self.id

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "productId": self.product_id,
            "name": self.name,
            "unitPrice": money_str(self.unit_price),
            "quantity": self.quantity,
            "productType": self.product_type.value,
            "weightKg": str(self.weight_kg),
            "isConsolidable": self.is_consolidable,
            "fixedShippingCost": money_str(self.fixed_shipping_cost),
            "stock": self.stock,
            "lineTotal": money_str(self.line_total)
        }
