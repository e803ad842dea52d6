"""
Cart service - handles cart operations and order quotes
"""
from decimal import Decimal
from datetime import datetime
from typing import Dict, List, Any, Optional, Callable, Sequence

import structlog

from models.cart import CartLineItem
from models.money import ZERO, parse_decimal, money_str, round_money
from models.order import DeliveryMethod, OrderTotals
from models.product import ProductType
from database.repository import CartRepository, DiscountRepository
from .cost_calculator import OrderCostCalculator, DEFAULT_DELIVERY_FEE, utc_now
from .errors import errmsg, BusinessRuleError, NotFoundError, ValidationError
from .product_service import ProductService
from .settings_service import SettingsService

logger = structlog.get_logger()


def parse_delivery_method(value: Any) -> DeliveryMethod:
    if not value:
        raise ValidationError(errmsg.DELIVERY_METHOD_REQUIRED)
    try:
        return DeliveryMethod(value)
    except ValueError:
        raise ValidationError(f"Unknown delivery method: {value}")


def line_from_dict(data: Dict[str, Any]) -> CartLineItem:
    # 클라이언트가 보낸 장바구니 라인 변환 (견적 계산용)
    line_id = data.get("id")
    unit_price = parse_decimal(data.get("unitPrice"))
    quantity = data.get("quantity")
    if not line_id or unit_price is None or unit_price < ZERO:
        raise ValidationError("Each line needs an id and a non-negative unitPrice")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError(errmsg.QUANTITY_POSITIVE)

    try:
        product_type = ProductType(data.get("productType", ProductType.PHYSICAL.value))
    except ValueError:
        raise ValidationError(f"Unknown product type: {data.get('productType')}")

    weight = parse_decimal(data.get("weightKg", 0))
    fixed_cost = parse_decimal(data.get("fixedShippingCost", 0))
    if weight is None or weight < ZERO or fixed_cost is None or fixed_cost < ZERO:
        raise ValidationError("weightKg and fixedShippingCost must be non-negative numbers")

    return CartLineItem(
        id=str(line_id),
        name=str(data.get("name", line_id)),
        unit_price=unit_price,
        quantity=quantity,
        product_type=product_type,
        weight_kg=weight,
        is_consolidable=bool(data.get("isConsolidable", True)),
        fixed_shipping_cost=fixed_cost,
        product_id=data.get("productId")
    )


class CartService:
    # 장바구니 관련 비즈니스 로직을 처리하는 서비스 클래스

    def __init__(self, cart_repository: CartRepository, product_service: ProductService,
                 settings_service: SettingsService, discount_repository: DiscountRepository,
                 default_delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
                 clock: Callable[[], datetime] = utc_now):
        # 저장소와 서비스 인스턴스 주입
        self.cart_repo = cart_repository
        self.product_service = product_service
        self.settings_service = settings_service
        self.discount_repo = discount_repository
        self.default_delivery_fee = default_delivery_fee
        self.clock = clock

    def add_item(self, session_id: str, product_id: str, quantity: int = 1,
                 denomination: Optional[Any] = None) -> Dict[str, Any]:
        # 상품을 장바구니에 추가 (같은 라인은 수량 병합, 재고 한도로 제한)
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError(errmsg.QUANTITY_POSITIVE)

        product = self.product_service.get_product(product_id)
        if not product.is_active:
            raise BusinessRuleError(errmsg.PRODUCT_INACTIVE, code="PRODUCT_INACTIVE")
        if product.stock_quantity <= 0:
            raise BusinessRuleError(errmsg.INSUFFICIENT_STOCK, code="INSUFFICIENT_STOCK")

        line_id = product.product_id
        name = product.product_name
        unit_price = product.price

        # 디지털 상품의 권종은 별도 라인으로 관리
        if denomination is not None:
            amount = parse_decimal(denomination)
            if amount is not None:
                amount = round_money(amount)
            if amount is None or amount <= ZERO:
                raise ValidationError(errmsg.INVALID_AMOUNT)
            line_id = f"{product.product_id}:{money_str(amount)}"
            name = f"{product.product_name} - ${money_str(amount)}"
            unit_price = amount

        existing = self.cart_repo.get_item(session_id, line_id)
        requested = quantity + (existing.quantity if existing else 0)
        new_quantity = min(requested, product.stock_quantity)

        line = CartLineItem(
            id=line_id,
            name=name,
            unit_price=unit_price,
            quantity=new_quantity,
            product_type=product.product_type,
            weight_kg=product.weight_kg,
            is_consolidable=product.is_consolidable,
            fixed_shipping_cost=product.shipping_cost,
            product_id=product.product_id,
            stock=product.stock_quantity
        )
        self.cart_repo.upsert_item(session_id, line)

        logger.info("cart_item_added", session_id=session_id, line_id=line_id,
                    quantity=new_quantity, clamped=new_quantity < requested)

        return {
            "success": True,
            "item": line.to_dict(),
            "clampedToStock": new_quantity < requested,
            "message": f"{name} added to cart"
        }

    def update_quantity(self, session_id: str, line_id: str, quantity: int) -> Dict[str, Any]:
        # 수량 변경 (0 이하이면 삭제, 재고 초과 시 재고로 제한)
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise ValidationError("Quantity must be an integer")

        line = self.cart_repo.get_item(session_id, line_id)
        if line is None:
            raise NotFoundError(errmsg.ITEM_NOT_IN_CART, code="ITEM_NOT_IN_CART")

        if quantity <= 0:
            self.cart_repo.remove_item(session_id, line_id)
            return {"success": True, "removed": True, "item": None}

        if line.stock is not None:
            quantity = min(quantity, line.stock)
        line.quantity = quantity
        self.cart_repo.upsert_item(session_id, line)

        return {"success": True, "removed": False, "item": line.to_dict()}

    def remove_item(self, session_id: str, line_id: str) -> Dict[str, Any]:
        if self.cart_repo.remove_item(session_id, line_id) == 0:
            raise NotFoundError(errmsg.ITEM_NOT_IN_CART, code="ITEM_NOT_IN_CART")
        return {"success": True, "message": "Item removed from cart"}

    def clear_cart(self, session_id: str) -> Dict[str, Any]:
        # 장바구니 전체 비우기
        removed = self.cart_repo.clear_cart(session_id)
        return {"success": True, "removed_items": removed}

    def get_lines(self, session_id: str) -> List[CartLineItem]:
        return self.cart_repo.get_cart_items(session_id)

    def compute_totals(self, lines: Sequence[CartLineItem], user_id: Optional[str],
                       delivery_method: DeliveryMethod) -> OrderTotals:
        # 현재 매장 설정과 고객 할인으로 주문 금액 계산
        settings = self.settings_service.get_settings()
        discounts = self.discount_repo.get_user_discounts(user_id) if user_id else []
        calculator = OrderCostCalculator(settings.shipping, clock=self.clock,
                                         default_fee=self.default_delivery_fee)
        return calculator.compute(lines, discounts, delivery_method)

    def get_cart_details(self, session_id: str, user_id: Optional[str] = None,
                         delivery_method: DeliveryMethod = DeliveryMethod.PICKUP) -> Dict[str, Any]:
        # 세션의 현재 장바구니 내용과 금액 요약 조회
        lines = self.get_lines(session_id)
        totals = self.compute_totals(lines, user_id, delivery_method)

        return {
            "success": True,
            "cart_items": [line.to_dict() for line in lines],
            "summary": {
                "total_items": len(lines),
                "total_quantity": sum(line.quantity for line in lines),
                "deliveryMethod": delivery_method.value,
                **totals.to_dict()
            },
            "message": f"{len(lines)} item(s) in cart" if lines else "Cart is empty"
        }

    def quote(self, session_id: str, user_id: Optional[str], delivery_method: Any,
              items: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        # 주문 금액 견적 (items가 있으면 클라이언트 장바구니 기준)
        method = parse_delivery_method(delivery_method)
        lines = [line_from_dict(item) for item in items] if items is not None else self.get_lines(session_id)
        totals = self.compute_totals(lines, user_id, method)
        settings = self.settings_service.get_settings()

        return {
            "success": True,
            "totals": totals.to_dict(),
            "weightBasedShippingEstimate": money_str(
                OrderCostCalculator(settings.shipping).weight_based_preview(lines)
            )
        }
