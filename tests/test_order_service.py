"""
Tests for order placement
"""
import unittest
import tempfile
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest import mock

from config import Settings
from core.storefront import Storefront
from models.order import (
    DeliveryMethod, Order, OrderItem, OrderStatus, OrderTotals, PaymentMethod
)
from models.discount import ActiveDiscount, DiscountStatus
from models.product import Product, ProductType
from models.recharge import TransactionStatus, TransactionType
from services.errors import (
    AuthenticationError, BusinessRuleError, NotFoundError, ValidationError
)
from services.order_service import next_order_number

FIXED_NOW = datetime(2026, 5, 4, 15, 30, tzinfo=timezone.utc)


class TestOrderService(unittest.TestCase):
    """Test cases for OrderService"""

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(Settings(db_path=self.test_db.name), clock=lambda: FIXED_NOW)
        self.orders = self.store.order_service
        self.session_id = "test_session"
        self.user_id = "user-1"

        self.store.product_repo.save_product(Product(
            "headphones", "Headphones", ProductType.PHYSICAL, Decimal("50"), stock_quantity=20))
        self.store.product_repo.save_product(Product(
            "speaker", "Speaker", ProductType.PHYSICAL, Decimal("30"), stock_quantity=2))

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    def _fund_wallet(self, amount: str):
        # 약관 동의 후 수동 충전을 승인하여 잔액 적립
        self.store.balance_service.accept_terms(self.user_id, "V12345678", "Jane Doe")
        created = self.store.recharge_service.create_recharge(
            self.user_id, amount, "ZELLE", reference="ZL-1001")
        self.store.recharge_service.review_recharge(created["transaction"]["id"], True, "admin-1")

    def test_requires_user(self):
        self.store.add_to_cart(self.session_id, "headphones")
        with self.assertRaises(AuthenticationError):
            self.orders.create_order(None, self.session_id, "PICKUP", "ZELLE")

    def test_process_empty_cart_order(self):
        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "ZELLE")
        self.assertEqual(ctx.exception.code, "CART_EMPTY")

    def test_missing_methods(self):
        self.store.add_to_cart(self.session_id, "headphones")

        with self.assertRaises(ValidationError):
            self.orders.create_order(self.user_id, self.session_id, None, "ZELLE")
        with self.assertRaises(ValidationError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "")
        self.assertEqual(ctx.exception.code, "PAYMENT_METHOD_REQUIRED")
        with self.assertRaises(ValidationError):
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "BARTER")

    def test_external_payment_order(self):
        self.store.add_to_cart(self.session_id, "headphones", 2)

        result = self.orders.create_order(self.user_id, self.session_id, "PICKUP", "ZELLE")
        order = result["order"]

        self.assertTrue(result["success"])
        self.assertEqual(order["orderNumber"], "ORD-2026-0001")
        self.assertEqual(order["status"], "PENDING")
        self.assertIsNone(order["paidAt"])
        self.assertEqual(order["total"], "100.00")
        self.assertEqual(order["items"][0]["quantity"], 2)

        self.assertEqual(self.store.product_service.get_product("headphones").stock_quantity, 18)
        self.assertEqual(self.store.cart_service.get_lines(self.session_id), [])

    def test_order_numbers_are_sequential(self):
        self.store.add_to_cart(self.session_id, "headphones")
        self.orders.create_order(self.user_id, self.session_id, "PICKUP", "CASH")
        self.store.add_to_cart(self.session_id, "headphones")
        result = self.orders.create_order(self.user_id, self.session_id, "PICKUP", "CASH")

        self.assertEqual(result["order"]["orderNumber"], "ORD-2026-0002")

    def test_free_delivery_scenario(self):
        """Two items of 50 with home delivery and a threshold of 100"""
        self.store.settings_service.update_settings({"freeDeliveryThresholdUSD": "100"})
        self.store.add_to_cart(self.session_id, "headphones", 2)

        order = self.orders.create_order(
            self.user_id, self.session_id, "HOME_DELIVERY", "ZELLE")["order"]

        self.assertEqual(order["shipping"], "0.00")
        self.assertEqual(order["total"], "100.00")
        self.assertEqual(order["deliveryMethod"], "HOME_DELIVERY")

    def test_wallet_order_is_paid(self):
        self._fund_wallet("80")
        self.store.add_to_cart(self.session_id, "headphones")

        order = self.orders.create_order(self.user_id, self.session_id, "PICKUP", "WALLET")["order"]

        self.assertEqual(order["status"], "PAID")
        self.assertIsNotNone(order["paidAt"])

        balance = self.store.balance_service.get_balance(self.user_id)
        self.assertEqual(balance.balance, Decimal("30"))
        self.assertEqual(balance.total_spent, Decimal("50.00"))

        purchase = self.store.balance_repo.get_transactions(self.user_id)[0]
        self.assertEqual(purchase.transaction_type, TransactionType.PURCHASE)
        self.assertEqual(purchase.status, TransactionStatus.COMPLETED)
        self.assertEqual(purchase.metadata["orderNumber"], order["orderNumber"])

    def test_wallet_without_balance(self):
        self.store.add_to_cart(self.session_id, "headphones")

        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "WALLET")
        self.assertEqual(ctx.exception.code, "NO_BALANCE")
        self.assertEqual(ctx.exception.action, "recharge_balance")

    def test_wallet_insufficient_balance(self):
        self._fund_wallet("20")
        self.store.add_to_cart(self.session_id, "headphones")

        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "WALLET")

        self.assertEqual(ctx.exception.code, "INSUFFICIENT_BALANCE")
        self.assertEqual(ctx.exception.details["available"], "20")
        self.assertEqual(len(self.store.cart_service.get_lines(self.session_id)), 1)

    def test_fully_discounted_wallet_order(self):
        """A 100% discount with pickup costs nothing and needs no balance"""
        self.store.discount_repo.add_discount(ActiveDiscount(
            id="disc-free", product_id="speaker", status=DiscountStatus.APPROVED,
            requested_discount_percent=Decimal("100"), user_id=self.user_id
        ))
        self.store.add_to_cart(self.session_id, "speaker")

        order = self.orders.create_order(self.user_id, self.session_id, "PICKUP", "WALLET")["order"]

        self.assertEqual(order["total"], "0.00")
        self.assertEqual(order["status"], "PAID")
        self.assertEqual(order["appliedDiscountIds"], ["disc-free"])

        balance = self.store.balance_service.get_balance(self.user_id)
        self.assertEqual(balance.balance, Decimal("0"))
        purchase = self.store.balance_repo.get_transactions(self.user_id)[0]
        self.assertEqual(purchase.amount, Decimal("0"))

    def test_stock_problems_are_listed(self):
        self.store.add_to_cart(self.session_id, "speaker", 2)
        self.store.product_service.update_product("speaker", {"stock": 1})

        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "CASH")

        self.assertEqual(ctx.exception.code, "INSUFFICIENT_STOCK")
        self.assertEqual(ctx.exception.details,
                         ["Insufficient stock for Speaker. Available: 1, requested: 2"])

    def test_delivery_method_availability(self):
        self.store.add_to_cart(self.session_id, "headphones")
        self.store.settings_service.update_settings({"deliveryEnabled": False, "pickupEnabled": False})

        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "HOME_DELIVERY", "CASH")
        self.assertEqual(ctx.exception.code, "DELIVERY_DISABLED")

        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "CASH")
        self.assertEqual(ctx.exception.code, "PICKUP_DISABLED")

    def test_order_limits_use_grand_total(self):
        self.store.add_to_cart(self.session_id, "headphones")
        self.store.settings_service.update_settings({"minOrderAmountUSD": "55"})

        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "CASH")
        self.assertEqual(ctx.exception.code, "ORDER_BELOW_MINIMUM")

        # 배송비 10 포함 시 최소 금액 충족
        result = self.orders.create_order(self.user_id, self.session_id, "HOME_DELIVERY", "CASH")
        self.assertEqual(result["order"]["total"], "60.00")

        self.store.add_to_cart(self.session_id, "headphones", 3)
        self.store.settings_service.update_settings({"maxOrderAmountUSD": "100"})
        with self.assertRaises(BusinessRuleError) as ctx:
            self.orders.create_order(self.user_id, self.session_id, "PICKUP", "CASH")
        self.assertEqual(ctx.exception.code, "ORDER_ABOVE_MAXIMUM")

    def test_conflict_keeps_cart(self):
        self.store.add_to_cart(self.session_id, "headphones")

        with mock.patch.object(self.store.order_repo, "create_order", return_value=False):
            with self.assertRaises(BusinessRuleError) as ctx:
                self.orders.create_order(self.user_id, self.session_id, "PICKUP", "CASH")

        self.assertEqual(ctx.exception.code, "ORDER_CONFLICT")
        self.assertEqual(len(self.store.cart_service.get_lines(self.session_id)), 1)

    def test_order_details(self):
        self.store.add_to_cart(self.session_id, "speaker")
        number = self.orders.create_order(
            self.user_id, self.session_id, "PICKUP", "CASH")["order"]["orderNumber"]

        details = self.orders.get_order_details(number, self.user_id)["order"]
        self.assertEqual(details["total"], "30.00")
        self.assertEqual(details["items"][0]["productId"], "speaker")

        with self.assertRaises(NotFoundError):
            self.orders.get_order_details(number, "someone-else")
        with self.assertRaises(NotFoundError):
            self.orders.get_order_details("ORD-2026-9999")


class TestOrderRepository(unittest.TestCase):
    """Test cases for the atomic order write"""

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(Settings(db_path=self.test_db.name))
        self.store.product_repo.save_product(Product(
            "speaker", "Speaker", ProductType.PHYSICAL, Decimal("30"), stock_quantity=1))

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    def test_stock_conflict_rolls_back(self):
        order_id = str(uuid.uuid4())
        order = Order(
            order_id=order_id,
            order_number="ORD-2026-0001",
            user_id="user-1",
            totals=OrderTotals(Decimal("60.00"), Decimal("0.00"), Decimal("0.00"), Decimal("60.00")),
            payment_method=PaymentMethod.CASH,
            delivery_method=DeliveryMethod.PICKUP,
            status=OrderStatus.PENDING,
            created_at=FIXED_NOW.isoformat(),
            items=[OrderItem("item-1", order_id, "speaker", "Speaker", 2,
                             Decimal("30"), Decimal("60.00"))]
        )

        self.assertFalse(self.store.order_repo.create_order(order))
        self.assertIsNone(self.store.order_repo.get_order_details("ORD-2026-0001"))
        self.assertEqual(self.store.product_service.get_product("speaker").stock_quantity, 1)


class TestOrderNumbers(unittest.TestCase):
    """Test cases for next_order_number"""

    def test_first_of_year(self):
        self.assertEqual(next_order_number(None, 2026), "ORD-2026-0001")

    def test_sequence_continues(self):
        self.assertEqual(next_order_number("ORD-2026-0042", 2026), "ORD-2026-0043")

    def test_new_year_resets(self):
        self.assertEqual(next_order_number("ORD-2025-0042", 2026), "ORD-2026-0001")


if __name__ == '__main__':
    unittest.main()
