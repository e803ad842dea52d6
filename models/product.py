"""
Product related data models
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Dict, Any
from enum import Enum

from .money import ZERO, money_str


class ProductType(Enum):
    PHYSICAL = "PHYSICAL"
    DIGITAL = "DIGITAL"


@dataclass
class Category:
    """Product category"""
    category_id: str
    name: str
    slug: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.category_id, "name": self.name, "slug": self.slug}


@dataclass
class Product:
    """Product data model"""
    product_id: str
    product_name: str
    product_type: ProductType
    price: Decimal
    description: Optional[str] = None
    category_id: Optional[str] = None
    stock_quantity: int = 0
    weight_kg: Decimal = ZERO
    is_consolidable: bool = True
    shipping_cost: Decimal = ZERO
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.product_id,
            "name": self.product_name,
            "productType": self.product_type.value,
            "price": money_str(self.price),
            "description": self.description,
            "categoryId": self.category_id,
            "stock": self.stock_quantity,
            "weightKg": str(self.weight_kg),
            "isConsolidable": self.is_consolidable,
            "shippingCost": money_str(self.shipping_cost),
            "isActive": self.is_active
        }
