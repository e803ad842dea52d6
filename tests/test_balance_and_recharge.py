"""
Tests for wallet balance, terms acceptance and recharge requests
"""
import unittest
import tempfile
import os
from decimal import Decimal

from config import Settings
from core.storefront import Storefront
from models.order import PaymentMethod
from models.recharge import (
    CompanyPaymentMethod, PENDING_VERIFICATION, TransactionStatus, TransactionType
)
from services.errors import (
    AuthorizationError, BusinessRuleError, NotFoundError, TermsNotAcceptedError, ValidationError
)


class WalletTestCase(unittest.TestCase):
    """Shared temporary storefront for wallet tests"""

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(Settings(db_path=self.test_db.name))
        self.balance = self.store.balance_service
        self.recharges = self.store.recharge_service
        self.user_id = "user-1"

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    def accept_terms(self, user_id=None):
        self.balance.accept_terms(user_id or self.user_id, "V12345678", "Jane Doe")

    def fund(self, amount, user_id=None):
        user_id = user_id or self.user_id
        created = self.recharges.create_recharge(user_id, amount, "ZELLE", reference="ZL-2001")
        return self.recharges.review_recharge(created["transaction"]["id"], True, "admin-1")


class TestBalanceService(WalletTestCase):
    """Test cases for BalanceService"""

    def test_new_user_has_zero_balance(self):
        details = self.balance.get_balance_details(self.user_id)

        self.assertEqual(details["balance"]["balance"], "0.00")
        self.assertEqual(details["balance"]["currency"], "USD")
        self.assertEqual(details["transactions"], [])

    def test_terms_acceptance(self):
        self.assertFalse(self.balance.get_terms_status(self.user_id)["hasAccepted"])

        with self.assertRaises(ValidationError):
            self.balance.accept_terms(self.user_id, "", "Jane Doe")
        with self.assertRaises(ValidationError):
            self.balance.accept_terms(self.user_id, "V12345678", None)

        first = self.balance.accept_terms(self.user_id, "V12345678", "Jane Doe", phone="04141234567")
        second = self.balance.accept_terms(self.user_id, "V87654321", "Someone Else")

        self.assertFalse(first["alreadyAccepted"])
        self.assertTrue(second["alreadyAccepted"])
        self.assertEqual(first["acceptance"]["acceptedAt"], second["acceptance"]["acceptedAt"])

        status = self.balance.get_terms_status(self.user_id)
        self.assertTrue(status["hasAccepted"])
        self.assertEqual(status["termsVersion"], "1.0")

    def test_deduct(self):
        self.accept_terms()
        self.fund("40")

        result = self.balance.deduct(self.user_id, "15.5", "Coffee", order_id="order-9")

        self.assertEqual(result["balance"]["balance"], "24.50")
        self.assertEqual(result["balance"]["totalSpent"], "15.50")
        self.assertEqual(result["transaction"]["type"], "PURCHASE")
        self.assertEqual(result["transaction"]["status"], "COMPLETED")

    def test_deduct_rejections(self):
        with self.assertRaises(ValidationError) as ctx:
            self.balance.deduct(self.user_id, "-4")
        self.assertEqual(ctx.exception.code, "INVALID_AMOUNT")

        with self.assertRaises(BusinessRuleError) as ctx:
            self.balance.deduct(self.user_id, "4")
        self.assertEqual(ctx.exception.code, "NO_BALANCE")

        self.accept_terms()
        self.fund("3")
        with self.assertRaises(BusinessRuleError) as ctx:
            self.balance.deduct(self.user_id, "4")
        self.assertEqual(ctx.exception.code, "INSUFFICIENT_BALANCE")
        self.assertEqual(ctx.exception.action, "recharge_balance")


class TestRechargeService(WalletTestCase):
    """Test cases for RechargeService"""

    def test_terms_required(self):
        with self.assertRaises(TermsNotAcceptedError) as ctx:
            self.recharges.create_recharge(self.user_id, "25", "ZELLE", reference="123")
        self.assertEqual(ctx.exception.action, "accept_terms")

    def test_amount_validation(self):
        self.accept_terms()

        with self.assertRaises(ValidationError) as ctx:
            self.recharges.create_recharge(self.user_id, "abc", "ZELLE", reference="123")
        self.assertEqual(ctx.exception.code, "INVALID_AMOUNT")

        for amount in ("0.5", "5000"):
            with self.assertRaises(ValidationError) as ctx:
                self.recharges.create_recharge(self.user_id, amount, "ZELLE", reference="123")
            self.assertEqual(ctx.exception.code, "AMOUNT_OUT_OF_RANGE")

    def test_wallet_cannot_recharge_wallet(self):
        self.accept_terms()
        with self.assertRaises(ValidationError) as ctx:
            self.recharges.create_recharge(self.user_id, "25", "WALLET", reference="123")
        self.assertEqual(ctx.exception.code, "PAYMENT_METHOD_UNAVAILABLE")

    def test_manual_method_requires_reference(self):
        """Bank transfer with an empty reference is blocked"""
        self.accept_terms()
        with self.assertRaises(ValidationError) as ctx:
            self.recharges.create_recharge(self.user_id, "25", "BANK_TRANSFER", reference="  ")

        self.assertEqual(ctx.exception.code, "REFERENCE_REQUIRED")
        self.assertEqual(ctx.exception.message, "Reference required")
        self.assertEqual(self.store.balance_repo.get_transactions(self.user_id), [])

    def test_mobile_payment_without_reference(self):
        self.accept_terms()
        result = self.recharges.create_recharge(self.user_id, "25", "MOBILE_PAYMENT")

        transaction = result["transaction"]
        self.assertEqual(transaction["status"], "PENDING")
        self.assertEqual(transaction["reference"], PENDING_VERIFICATION)
        self.assertEqual(transaction["amount"], "25.00")

    def test_only_active_company_methods(self):
        self.store.payment_method_repo.save_method(CompanyPaymentMethod(
            "pm-mobile", PaymentMethod.MOBILE_PAYMENT, "Pago Movil", phone="04141234567"))
        self.accept_terms()

        with self.assertRaises(ValidationError):
            self.recharges.create_recharge(self.user_id, "25", "ZELLE", reference="123")

        methods = self.recharges.get_payment_methods()["paymentMethods"]
        self.assertEqual([m["id"] for m in methods], ["pm-mobile"])
        self.assertTrue(methods[0]["autoVerification"])

    def test_cancel_recharge(self):
        self.accept_terms()
        created = self.recharges.create_recharge(self.user_id, "25", "ZELLE", reference="ZL-1")
        transaction_id = created["transaction"]["id"]

        with self.assertRaises(AuthorizationError):
            self.recharges.cancel_recharge("intruder", transaction_id)

        self.recharges.cancel_recharge(self.user_id, transaction_id)
        stored = self.store.balance_repo.get_transaction(transaction_id)
        self.assertEqual(stored.status, TransactionStatus.CANCELLED)
        self.assertEqual(stored.metadata["cancelledBy"], "USER")

        with self.assertRaises(BusinessRuleError) as ctx:
            self.recharges.cancel_recharge(self.user_id, transaction_id)
        self.assertEqual(ctx.exception.code, "TRANSACTION_NOT_PENDING")

        with self.assertRaises(NotFoundError):
            self.recharges.cancel_recharge(self.user_id, "missing")

    def test_review_approve_credits_balance(self):
        self.accept_terms()
        result = self.fund("25")

        self.assertEqual(result["transaction"]["status"], "APPROVED")
        balance = self.balance.get_balance(self.user_id)
        self.assertEqual(balance.balance, Decimal("25"))
        self.assertEqual(balance.total_recharges, Decimal("25"))

        with self.assertRaises(BusinessRuleError):
            self.recharges.review_recharge(result["transaction"]["id"], True, "admin-1")
        self.assertEqual(self.balance.get_balance(self.user_id).balance, Decimal("25"))

    def test_review_reject_does_not_credit(self):
        self.accept_terms()
        created = self.recharges.create_recharge(self.user_id, "25", "ZELLE", reference="ZL-1")

        result = self.recharges.review_recharge(created["transaction"]["id"], False, "admin-1",
                                                note="Payment not received")

        self.assertEqual(result["transaction"]["status"], "REJECTED")
        self.assertEqual(self.balance.get_balance(self.user_id).balance, Decimal("0"))
        stored = self.store.balance_repo.get_transaction(created["transaction"]["id"])
        self.assertEqual(stored.metadata["reviewNote"], "Payment not received")

    def test_review_only_recharges(self):
        self.accept_terms()
        self.fund("25")
        purchase = self.balance.deduct(self.user_id, "5")["transaction"]

        with self.assertRaises(NotFoundError):
            self.recharges.review_recharge(purchase["id"], True)

    def test_pending_recharges(self):
        self.accept_terms()
        self.recharges.create_recharge(self.user_id, "25", "ZELLE", reference="ZL-1")
        self.fund("10")

        pending = self.recharges.get_pending_recharges(self.user_id)["transactions"]
        self.assertEqual(len(pending), 1)
        self.assertEqual(pending[0]["amount"], "25.00")

        history = self.balance.get_balance_details(self.user_id)["transactions"]
        self.assertEqual({t["type"] for t in history}, {TransactionType.RECHARGE.value})
        self.assertEqual(len(history), 2)


if __name__ == '__main__':
    unittest.main()
