"""
Order service - handles order processing
"""
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Any, Callable

import structlog

from models.order import Order, OrderItem, OrderStatus, PaymentMethod, DeliveryMethod
from models.money import money_str, round_money
from database.repository import OrderRepository
from .balance_service import BalanceService, now_iso
from .cart_service import CartService, parse_delivery_method
from .cost_calculator import utc_now
from .errors import (
    errmsg, AuthenticationError, BusinessRuleError, NotFoundError, ValidationError
)
from .product_service import ProductService
from .settings_service import SettingsService

logger = structlog.get_logger()


def next_order_number(last_number: Optional[str], year: int) -> str:
    # ORD-<연도>-<4자리 일련번호>, 해마다 0001부터 다시 시작
    sequence = 0
    prefix = f"ORD-{year}-"
    if last_number and last_number.startswith(prefix):
        sequence = int(last_number[len(prefix):])
    return f"{prefix}{sequence + 1:04d}"


class OrderService:
    # 주문 관련 비즈니스 로직을 처리하는 서비스 클래스

    def __init__(self, order_repository: OrderRepository, cart_service: CartService,
                 product_service: ProductService, settings_service: SettingsService,
                 balance_service: BalanceService, clock: Callable[[], datetime] = utc_now):
        # 저장소와 서비스 인스턴스 주입
        self.order_repo = order_repository
        self.cart_service = cart_service
        self.product_service = product_service
        self.settings_service = settings_service
        self.balance_service = balance_service
        self.clock = clock

    def _check_delivery(self, delivery_method: DeliveryMethod) -> None:
        settings = self.settings_service.get_settings()
        if delivery_method == DeliveryMethod.PICKUP:
            if not settings.pickup_enabled:
                raise BusinessRuleError(errmsg.PICKUP_DISABLED, code="PICKUP_DISABLED")
        elif not settings.shipping.delivery_enabled:
            raise BusinessRuleError(errmsg.DELIVERY_DISABLED, code="DELIVERY_DISABLED")

    def _check_limits(self, total) -> None:
        # 관리자 설정 최소/최대 주문 금액 확인
        settings = self.settings_service.get_settings()
        if settings.min_order_amount is not None and total < settings.min_order_amount:
            raise BusinessRuleError(errmsg.ORDER_BELOW_MINIMUM, code="ORDER_BELOW_MINIMUM",
                                    details={"minimum": money_str(settings.min_order_amount)})
        if settings.max_order_amount is not None and total > settings.max_order_amount:
            raise BusinessRuleError(errmsg.ORDER_ABOVE_MAXIMUM, code="ORDER_ABOVE_MAXIMUM",
                                    details={"maximum": money_str(settings.max_order_amount)})

    def _check_stock(self, lines) -> None:
        # 모든 라인의 재고/판매 상태를 한 번에 검사, 문제가 있으면 목록과 함께 거절
        problems = []
        requested: Dict[str, int] = {}
        for line in lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        for product_id, quantity in requested.items():
            try:
                product = self.product_service.get_product(product_id)
            except NotFoundError:
                problems.append(f"Product not found: {product_id}")
                continue
            if not product.is_active:
                problems.append(f"{product.product_name} is not available")
            elif product.stock_quantity < quantity:
                problems.append(
                    f"Insufficient stock for {product.product_name}. "
                    f"Available: {product.stock_quantity}, requested: {quantity}"
                )

        if problems:
            raise BusinessRuleError(errmsg.INSUFFICIENT_STOCK, code="INSUFFICIENT_STOCK",
                                    details=problems)

    def create_order(self, user_id: Optional[str], session_id: str, delivery_method: Any,
                     payment_method: Any) -> Dict[str, Any]:
        # 장바구니 내용을 바탕으로 최종 주문 처리
        if not user_id:
            raise AuthenticationError(errmsg.UNAUTHENTICATED)

        method = parse_delivery_method(delivery_method)
        if not payment_method:
            raise ValidationError(errmsg.PAYMENT_METHOD_REQUIRED, code="PAYMENT_METHOD_REQUIRED")
        try:
            payment = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(errmsg.PAYMENT_METHOD_UNAVAILABLE, code="PAYMENT_METHOD_UNAVAILABLE")

        lines = self.cart_service.get_lines(session_id)
        if not lines:
            raise BusinessRuleError(errmsg.CART_EMPTY, code="CART_EMPTY")

        self._check_delivery(method)
        self._check_stock(lines)

        totals = self.cart_service.compute_totals(lines, user_id, method)
        self._check_limits(totals.grand_total)

        wallet_payment = None
        if payment == PaymentMethod.WALLET:
            self.balance_service.ensure_sufficient(user_id, totals.grand_total)

        now = self.clock()
        order_id = str(uuid.uuid4())
        order_number = next_order_number(
            self.order_repo.last_order_number(f"ORD-{now.year}-"), now.year
        )
        created_at = now.astimezone(timezone.utc).isoformat()

        if payment == PaymentMethod.WALLET:
            wallet_payment = self.balance_service.build_purchase(
                user_id, totals.grand_total, f"Order {order_number}",
                metadata={"orderId": order_id, "orderNumber": order_number}
            )

        order = Order(
            order_id=order_id,
            order_number=order_number,
            user_id=user_id,
            totals=totals,
            payment_method=payment,
            delivery_method=method,
            status=OrderStatus.PAID if wallet_payment else OrderStatus.PENDING,
            created_at=created_at,
            paid_at=now_iso() if wallet_payment else None,
            items=[
                OrderItem(
                    order_item_id=str(uuid.uuid4()),
                    order_id=order_id,
                    product_id=line.product_id,
                    product_name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=round_money(line.line_total)
                )
                for line in lines
            ]
        )

        if not self.order_repo.create_order(order, wallet_payment):
            raise BusinessRuleError(errmsg.ORDER_CONFLICT, code="ORDER_CONFLICT")

        # 주문 완료 후 장바구니 비우기
        self.cart_service.clear_cart(session_id)

        logger.info("order_created", order_number=order_number, user_id=user_id,
                    total=money_str(totals.grand_total), payment_method=payment.value,
                    applied_discounts=len(totals.applied_discount_ids))

        return {
            "success": True,
            "order": order.to_dict(),
            "message": f"Order placed. Order number: {order_number}"
        }

    def get_order_details(self, order_number: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        # 특정 주문의 상세 정보 조회 (user_id가 주어지면 본인 주문만)
        details = self.order_repo.get_order_details(order_number)
        if details is None or (user_id is not None and details["userId"] != user_id):
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        return {"success": True, "order": details}
