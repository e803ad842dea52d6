"""
Tests for mobile payment verification
"""
import asyncio
import unittest
import tempfile
import os
from datetime import date
from decimal import Decimal
from unittest import mock

from config import Settings
from core.storefront import Storefront
from models.recharge import (
    PENDING_VERIFICATION, TransactionStatus, VerificationOutcome, VerificationRequest,
    VerificationResult
)
from services.errors import AuthorizationError, BusinessRuleError, TransportError, ValidationError
from services.payment_verification import (
    PaymentVerifier, RESPONSE_DUPLICATE_REFERENCE, interpret_verification_error,
    is_valid_phone, is_valid_reference, normalize_id_number, parse_verification_request
)

PAYMENT = {
    "payerPhone": "0414-555-1234",
    "bankCode": "0102",
    "reference": "12345678",
    "paymentDate": "2026-05-04",
    "amount": "25",
}


class SlowVerifier(PaymentVerifier):
    async def verify(self, request: VerificationRequest) -> VerificationResult:
        await asyncio.sleep(1)
        return VerificationResult(VerificationOutcome.CONFIRMED, 1000, "Payment verified",
                                  request.amount)


class TestVerificationInput(unittest.TestCase):
    """Test cases for input validation and messages"""

    def test_parse_valid_request(self):
        request = parse_verification_request(dict(PAYMENT, payerIdNumber="12345678"))

        self.assertEqual(request.payer_phone, "04145551234")
        self.assertEqual(request.reference, "12345678")
        self.assertEqual(request.payment_date, date(2026, 5, 4))
        self.assertEqual(request.amount, Decimal("25"))
        self.assertEqual(request.payer_id_number, "V12345678")

    def test_parse_errors(self):
        cases = {
            "MISSING_FIELDS": dict(PAYMENT, bankCode=""),
            "INVALID_PHONE": dict(PAYMENT, payerPhone="0212-555-1234"),
            "INVALID_REFERENCE": dict(PAYMENT, reference="12"),
            "INVALID_AMOUNT": dict(PAYMENT, amount="0"),
            "INVALID_DATE": dict(PAYMENT, paymentDate="04/05/2026"),
            "INVALID_ID_NUMBER": dict(PAYMENT, payerIdNumber="X1"),
        }
        for code, data in cases.items():
            with self.assertRaises(ValidationError) as ctx:
                parse_verification_request(data)
            self.assertEqual(ctx.exception.code, code)

    def test_validators(self):
        self.assertTrue(is_valid_phone("04141234567"))
        self.assertTrue(is_valid_phone("0424 123 4567"))
        self.assertFalse(is_valid_phone("4141234567"))
        self.assertTrue(is_valid_reference("1234"))
        self.assertFalse(is_valid_reference("123456789"))
        self.assertEqual(normalize_id_number("e-8765432"), "E8765432")

    def test_friendly_messages(self):
        self.assertEqual(interpret_verification_error(1000, ""), "Payment verified")
        self.assertIn("Payment not found",
                      interpret_verification_error(1010, "Requested record does not exist"))
        self.assertIn("does not match the data provided",
                      interpret_verification_error(1010, "Transaction found but it does not match"))
        self.assertIn("already used", interpret_verification_error(4001, "Duplicate reference"))
        self.assertEqual(interpret_verification_error(999, "Bank offline"), "Bank offline")


class TestMobilePaymentVerification(unittest.IsolatedAsyncioTestCase):
    """Test cases for RechargeService.verify_mobile_payment"""

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(Settings(db_path=self.test_db.name))
        self.recharges = self.store.recharge_service
        self.user_id = "user-1"
        self.store.balance_service.accept_terms(self.user_id, "V12345678", "Jane Doe")
        self.store.verification_repo.add_bank_movement(
            "12345678", "04145551234", "0102", "2026-05-04", Decimal("25"))

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    def _pending_recharge(self, amount="25"):
        return self.recharges.create_recharge(self.user_id, amount, "MOBILE_PAYMENT")["transaction"]["id"]

    async def test_general_verification(self):
        result = await self.recharges.verify_mobile_payment(self.user_id, PAYMENT)

        self.assertTrue(result["verified"])
        self.assertEqual(result["code"], 1000)
        self.assertEqual(result["amount"], "25.00")
        self.assertIsNone(result["transactionStatus"])
        self.assertFalse(result["autoApproved"])

        history = self.recharges.get_verification_history(self.user_id)["verifications"]
        self.assertEqual(len(history), 1)
        self.assertTrue(history[0]["verified"])
        self.assertEqual(history[0]["context"], "GENERAL")

    async def test_duplicate_reference(self):
        await self.recharges.verify_mobile_payment(self.user_id, PAYMENT)

        with self.assertRaises(ValidationError) as ctx:
            await self.recharges.verify_mobile_payment("user-2", PAYMENT)

        self.assertEqual(ctx.exception.code, "DUPLICATE_REFERENCE")
        self.assertEqual(ctx.exception.details["responseCode"], RESPONSE_DUPLICATE_REFERENCE)

    async def test_duplicate_reference_rejects_recharge(self):
        await self.recharges.verify_mobile_payment(self.user_id, PAYMENT)
        transaction_id = self._pending_recharge()

        with self.assertRaises(ValidationError) as ctx:
            await self.recharges.verify_mobile_payment(
                self.user_id, PAYMENT, context="RECHARGE", transaction_id=transaction_id)

        self.assertEqual(ctx.exception.details["transactionStatus"], "REJECTED")
        stored = self.store.balance_repo.get_transaction(transaction_id)
        self.assertEqual(stored.status, TransactionStatus.REJECTED)
        self.assertEqual(stored.metadata["verificationCode"], RESPONSE_DUPLICATE_REFERENCE)

    async def test_recharge_auto_approval(self):
        transaction_id = self._pending_recharge()

        result = await self.recharges.verify_mobile_payment(
            self.user_id, PAYMENT, context="RECHARGE", transaction_id=transaction_id)

        self.assertTrue(result["autoApproved"])
        self.assertEqual(result["transactionStatus"], "APPROVED")

        stored = self.store.balance_repo.get_transaction(transaction_id)
        self.assertEqual(stored.reference_code, "12345678")
        self.assertTrue(stored.metadata["verifiedByApi"])
        self.assertEqual(self.store.balance_service.get_balance(self.user_id).balance, Decimal("25"))

    async def test_verified_recharge_waits_for_credit(self):
        transaction_id = self._pending_recharge()

        with mock.patch.object(self.store.balance_repo, "approve_recharge", return_value=False):
            result = await self.recharges.verify_mobile_payment(
                self.user_id, PAYMENT, context="RECHARGE", transaction_id=transaction_id)

        self.assertTrue(result["verified"])
        self.assertFalse(result["autoApproved"])
        self.assertEqual(result["transactionStatus"], "VERIFIED")
        self.assertIn("credited after review", result["message"])
        self.assertEqual(self.store.balance_service.get_balance(self.user_id).balance, Decimal("0"))

        pending = self.recharges.get_pending_recharges(self.user_id)["transactions"]
        self.assertEqual([t["status"] for t in pending], ["VERIFIED"])
        with self.assertRaises(BusinessRuleError):
            self.recharges.cancel_recharge(self.user_id, transaction_id)

        reviewed = self.recharges.review_recharge(transaction_id, True, "admin-1")
        self.assertEqual(reviewed["transaction"]["status"], "APPROVED")
        self.assertEqual(self.store.balance_service.get_balance(self.user_id).balance, Decimal("25"))

    async def test_lower_amount_goes_to_review(self):
        transaction_id = self._pending_recharge("30")

        result = await self.recharges.verify_mobile_payment(
            self.user_id, dict(PAYMENT, amount="30"), context="RECHARGE",
            transaction_id=transaction_id)

        self.assertTrue(result["verified"])
        self.assertFalse(result["autoApproved"])
        self.assertEqual(result["transactionStatus"], "PENDING")
        self.assertIn("reviewed manually", result["message"])

        stored = self.store.balance_repo.get_transaction(transaction_id)
        self.assertEqual(stored.status, TransactionStatus.PENDING)
        self.assertTrue(stored.metadata["amountMismatch"])
        self.assertEqual(self.store.balance_service.get_balance(self.user_id).balance, Decimal("0"))

    async def test_unknown_payment_rejects_recharge(self):
        transaction_id = self._pending_recharge()

        result = await self.recharges.verify_mobile_payment(
            self.user_id, dict(PAYMENT, reference="99999999"), context="RECHARGE",
            transaction_id=transaction_id)

        self.assertFalse(result["verified"])
        self.assertEqual(result["code"], 1010)
        self.assertEqual(result["transactionStatus"], "REJECTED")
        self.assertIn("Payment not found", result["message"])

        stored = self.store.balance_repo.get_transaction(transaction_id)
        self.assertEqual(stored.status, TransactionStatus.REJECTED)
        self.assertEqual(stored.reference_code, PENDING_VERIFICATION)

    async def test_mismatched_data_is_rejected(self):
        result = await self.recharges.verify_mobile_payment(
            self.user_id, dict(PAYMENT, bankCode="0134"))

        self.assertFalse(result["verified"])
        self.assertEqual(result["outcome"], "REJECTED")

        # 실패한 검증은 참조번호를 소모하지 않음
        retry = await self.recharges.verify_mobile_payment(self.user_id, PAYMENT)
        self.assertTrue(retry["verified"])

    async def test_other_users_transaction(self):
        transaction_id = self._pending_recharge()
        self.store.balance_service.accept_terms("user-2", "V7654321", "John Roe")

        with self.assertRaises(AuthorizationError) as ctx:
            await self.recharges.verify_mobile_payment(
                "user-2", PAYMENT, context="RECHARGE", transaction_id=transaction_id)
        self.assertEqual(ctx.exception.code, "TRANSACTION_NOT_OWNED")

    async def test_invalid_input_never_reaches_verifier(self):
        with self.assertRaises(ValidationError):
            await self.recharges.verify_mobile_payment(self.user_id, dict(PAYMENT, payerPhone="123"))
        with self.assertRaises(ValidationError):
            await self.recharges.verify_mobile_payment(self.user_id, PAYMENT, context="REFUND")

        self.assertEqual(self.recharges.get_verification_history(self.user_id)["verifications"], [])


class TestVerifierTimeout(unittest.IsolatedAsyncioTestCase):
    """Test cases for an unresponsive verifier"""

    def setUp(self):
        """Set up test database"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.test_db.close()
        self.store = Storefront(
            Settings(db_path=self.test_db.name, verification_timeout_seconds=0.05),
            verifier=SlowVerifier()
        )

    def tearDown(self):
        """Clean up test database"""
        os.unlink(self.test_db.name)

    async def test_timeout_is_transport_error(self):
        with self.assertRaises(TransportError) as ctx:
            await self.store.recharge_service.verify_mobile_payment("user-1", PAYMENT)

        self.assertEqual(ctx.exception.code, "VERIFIER_TIMEOUT")
        self.assertEqual(ctx.exception.status_code, 502)


if __name__ == '__main__':
    unittest.main()
