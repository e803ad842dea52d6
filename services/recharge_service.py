"""
Recharge service - wallet top-ups and their verification
"""
import asyncio
import uuid
from decimal import Decimal
from typing import Dict, Any, Optional, List

import structlog

from models.money import money_str
from models.order import PaymentMethod
from models.recharge import (
    CompanyPaymentMethod, RechargeTransaction, TransactionStatus, TransactionType, VerificationOutcome,
    VerificationResult, VerificationRequest, PENDING_VERIFICATION, AUTO_VERIFIABLE_METHODS
)
from database.wallet_repository import (
    BalanceRepository, PaymentMethodRepository, VerificationRepository
)
from .balance_service import BalanceService, now_iso, parse_positive_amount
from .errors import (
    errmsg, AuthorizationError, BusinessRuleError, NotFoundError, TransportError, ValidationError
)
from .payment_verification import (
    PaymentVerifier, RESPONSE_DUPLICATE_REFERENCE, interpret_verification_error,
    parse_verification_request, verification_record
)

logger = structlog.get_logger()

VERIFICATION_CONTEXTS = ("GENERAL", "RECHARGE", "ORDER")


class RechargeService:
    # 지갑 충전 요청, 검토, 모바일 결제 자동 검증 서비스

    def __init__(self, balance_repository: BalanceRepository,
                 payment_method_repository: PaymentMethodRepository,
                 verification_repository: VerificationRepository,
                 balance_service: BalanceService, verifier: PaymentVerifier,
                 min_amount: Decimal = Decimal("1"), max_amount: Decimal = Decimal("1000"),
                 verification_timeout: float = 30.0):
        self.balance_repo = balance_repository
        self.payment_method_repo = payment_method_repository
        self.verification_repo = verification_repository
        self.balance_service = balance_service
        self.verifier = verifier
        self.min_amount = min_amount
        self.max_amount = max_amount
        self.verification_timeout = verification_timeout

    def active_methods(self) -> List[CompanyPaymentMethod]:
        return self.payment_method_repo.get_active_methods()

    def get_payment_methods(self) -> Dict[str, Any]:
        # 고객에게 보여줄 활성 결제 수단 목록
        methods = self.active_methods()
        return {"success": True, "paymentMethods": [method.to_dict() for method in methods]}

    def _resolve_payment_method(self, payment_method: Any) -> PaymentMethod:
        if not payment_method:
            raise ValidationError(errmsg.PAYMENT_METHOD_REQUIRED, code="PAYMENT_METHOD_REQUIRED")
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(errmsg.PAYMENT_METHOD_UNAVAILABLE, code="PAYMENT_METHOD_UNAVAILABLE")

        # 지갑으로 지갑을 충전할 수 없음, 매장이 제공하는 결제 수단만 허용
        active = {m.type for m in self.active_methods()}
        if method == PaymentMethod.WALLET or (active and method not in active):
            raise ValidationError(errmsg.PAYMENT_METHOD_UNAVAILABLE, code="PAYMENT_METHOD_UNAVAILABLE")
        return method

    def _get_owned_transaction(self, user_id: str, transaction_id: str) -> RechargeTransaction:
        transaction = self.balance_repo.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(errmsg.TRANSACTION_NOT_FOUND, code="TRANSACTION_NOT_FOUND")
        if transaction.user_id != user_id:
            raise AuthorizationError(errmsg.TRANSACTION_NOT_OWNED, code="TRANSACTION_NOT_OWNED")
        return transaction

    def create_recharge(self, user_id: str, amount: Any, payment_method: Any,
                        reference: Optional[str] = None,
                        description: Optional[str] = None) -> Dict[str, Any]:
        # 대기 상태의 충전 거래 생성 (모바일 결제는 참조번호 없이 생성 가능)
        self.balance_service.require_terms(user_id)

        value = parse_positive_amount(amount)
        if value < self.min_amount or value > self.max_amount:
            raise ValidationError(errmsg.AMOUNT_OUT_OF_RANGE, code="AMOUNT_OUT_OF_RANGE",
                                  details={"min": money_str(self.min_amount),
                                           "max": money_str(self.max_amount)})

        method = self._resolve_payment_method(payment_method)
        reference = (reference or "").strip()
        if not reference:
            if method not in AUTO_VERIFIABLE_METHODS:
                raise ValidationError(errmsg.REFERENCE_REQUIRED, code="REFERENCE_REQUIRED")
            reference = PENDING_VERIFICATION

        self.balance_service.get_balance(user_id)

        timestamp = now_iso()
        transaction = RechargeTransaction(
            id=str(uuid.uuid4()),
            user_id=user_id,
            amount=value,
            payment_method=method,
            reference_code=reference,
            status=TransactionStatus.PENDING,
            transaction_type=TransactionType.RECHARGE,
            description=description or f"Balance recharge via {method.value}",
            metadata={"paymentMethod": method.value},
            created_at=timestamp,
            updated_at=timestamp
        )
        if not self.balance_repo.create_transaction(transaction):
            raise BusinessRuleError("Recharge request could not be created")

        logger.info("recharge_created", user_id=user_id, transaction_id=transaction.id,
                    amount=str(value), payment_method=method.value)

        return {
            "success": True,
            "transaction": transaction.to_dict(),
            "message": "Recharge request created"
        }

    def cancel_recharge(self, user_id: str, transaction_id: str) -> Dict[str, Any]:
        # 사용자가 대기 중인 충전 요청을 취소
        transaction = self._get_owned_transaction(user_id, transaction_id)
        if not transaction.is_pending():
            raise BusinessRuleError(errmsg.TRANSACTION_NOT_PENDING, code="TRANSACTION_NOT_PENDING")

        metadata = dict(transaction.metadata, cancelledAt=now_iso(), cancelledBy="USER")
        if not self.balance_repo.update_transaction_status(
                transaction_id, TransactionStatus.PENDING, TransactionStatus.CANCELLED, metadata):
            raise BusinessRuleError(errmsg.TRANSACTION_NOT_PENDING, code="TRANSACTION_NOT_PENDING")

        logger.info("recharge_cancelled", user_id=user_id, transaction_id=transaction_id)
        return {"success": True, "message": "Transaction cancelled"}

    def review_recharge(self, transaction_id: str, approve: bool, reviewer_id: Optional[str] = None,
                        note: Optional[str] = None) -> Dict[str, Any]:
        # 관리자 수동 검토 (승인 시 잔액 적립, 거절 시 적립 없음)
        transaction = self.balance_repo.get_transaction(transaction_id)
        if transaction is None or transaction.transaction_type != TransactionType.RECHARGE:
            raise NotFoundError(errmsg.TRANSACTION_NOT_FOUND, code="TRANSACTION_NOT_FOUND")
        if not transaction.awaiting_credit():
            raise BusinessRuleError(errmsg.TRANSACTION_NOT_PENDING, code="TRANSACTION_NOT_PENDING")

        metadata = dict(transaction.metadata, reviewedAt=now_iso(), reviewedBy=reviewer_id)
        if note:
            metadata["reviewNote"] = note

        if approve:
            changed = self.balance_repo.approve_recharge(transaction_id, metadata)
        else:
            changed = self.balance_repo.update_transaction_status(
                transaction_id, transaction.status, TransactionStatus.REJECTED, metadata)
        if not changed:
            raise BusinessRuleError(errmsg.TRANSACTION_NOT_PENDING, code="TRANSACTION_NOT_PENDING")

        logger.info("recharge_reviewed", transaction_id=transaction_id, approved=approve,
                    reviewer_id=reviewer_id)
        return {
            "success": True,
            "transaction": self.balance_repo.get_transaction(transaction_id).to_dict()
        }

    def apply_verification(self, transaction: RechargeTransaction, result: VerificationResult,
                           reference: Optional[str] = None) -> TransactionStatus:
        """Settle a pending recharge from a verifier answer.

        Confirmed payments covering the requested amount are approved and
        credited; active rejections reject the transaction; anything else
        leaves it pending for manual review. Returns the resulting status.
        """
        if not transaction.is_pending():
            return transaction.status

        metadata = dict(transaction.metadata, verificationCode=result.code,
                        verifiedAt=now_iso())

        if result.outcome == VerificationOutcome.CONFIRMED:
            verified_amount = result.verified_amount
            if verified_amount is not None and verified_amount >= transaction.amount:
                metadata["verifiedByApi"] = True
                # 은행 확인 완료 표시 후 잔액 적립 (적립 실패 시 VERIFIED로 남아 검토 대상)
                self.balance_repo.update_transaction_status(
                    transaction.id, TransactionStatus.PENDING, TransactionStatus.VERIFIED, metadata,
                    reference=reference)
                if self.balance_repo.approve_recharge(transaction.id, metadata):
                    logger.info("recharge_auto_approved", transaction_id=transaction.id,
                                amount=str(transaction.amount))
                    return TransactionStatus.APPROVED
                return self.balance_repo.get_transaction(transaction.id).status

            logger.warning("recharge_amount_mismatch", transaction_id=transaction.id,
                           requested=str(transaction.amount),
                           verified=str(verified_amount) if verified_amount is not None else None)
            metadata["amountMismatch"] = True
            self.balance_repo.update_transaction_status(
                transaction.id, TransactionStatus.PENDING, TransactionStatus.PENDING, metadata,
                reference=reference)
            return TransactionStatus.PENDING

        if result.outcome == VerificationOutcome.REJECTED:
            self.balance_repo.update_transaction_status(
                transaction.id, TransactionStatus.PENDING, TransactionStatus.REJECTED, metadata)
            logger.info("recharge_rejected_by_verifier", transaction_id=transaction.id,
                        code=result.code)
            return TransactionStatus.REJECTED

        return TransactionStatus.PENDING

    def reject_duplicate_reference(self, transaction: RechargeTransaction,
                                   reference: str) -> TransactionStatus:
        # 이미 사용된 참조번호로 검증을 시도한 충전 요청은 거절 처리
        if not transaction.is_pending():
            return transaction.status

        metadata = dict(transaction.metadata, verificationCode=RESPONSE_DUPLICATE_REFERENCE,
                        duplicateReference=reference, verifiedAt=now_iso())
        if not self.balance_repo.update_transaction_status(
                transaction.id, TransactionStatus.PENDING, TransactionStatus.REJECTED, metadata):
            return self.balance_repo.get_transaction(transaction.id).status

        logger.info("recharge_rejected_duplicate_reference", transaction_id=transaction.id,
                    reference=reference)
        return TransactionStatus.REJECTED

    async def verify_mobile_payment(self, user_id: str, data: Dict[str, Any],
                                    context: str = "GENERAL",
                                    transaction_id: Optional[str] = None) -> Dict[str, Any]:
        """Verify a mobile payment and settle the referenced recharge.

        Raises ValidationError before any verifier call on bad input or an
        already used reference, and TransportError when the verifier is
        unreachable or does not answer within the timeout.
        """
        if context not in VERIFICATION_CONTEXTS:
            raise ValidationError(f"Unknown verification context: {context}")
        request = parse_verification_request(data)

        transaction = None
        if context == "RECHARGE" and transaction_id:
            transaction = self._get_owned_transaction(user_id, transaction_id)

        already_used = await asyncio.to_thread(
            self.verification_repo.reference_already_verified, request.reference
        )
        if already_used:
            details: Dict[str, Any] = {"responseCode": RESPONSE_DUPLICATE_REFERENCE}
            if transaction is not None:
                status = await asyncio.to_thread(
                    self.reject_duplicate_reference, transaction, request.reference
                )
                details["transactionStatus"] = status.value
            raise ValidationError(errmsg.DUPLICATE_REFERENCE, code="DUPLICATE_REFERENCE",
                                  details=details)

        result = await self._call_verifier(request)

        record = verification_record(request, result, context,
                                     transaction.id if transaction else None)
        await asyncio.to_thread(self.verification_repo.record_verification, user_id, record)

        response: Dict[str, Any] = {
            "success": True,
            "verified": result.verified,
            "outcome": result.outcome.value,
            "code": result.code,
            "amount": money_str(result.verified_amount),
            "autoApproved": False,
            "transactionStatus": None
        }

        if transaction is not None:
            status = await asyncio.to_thread(
                self.apply_verification, transaction, result, request.reference
            )
            response["transactionStatus"] = status.value
            response["autoApproved"] = status == TransactionStatus.APPROVED

        if response["autoApproved"]:
            response["message"] = "Payment verified. Your recharge was approved automatically."
        elif response["transactionStatus"] == TransactionStatus.VERIFIED.value:
            response["message"] = "Payment verified. Your recharge will be credited after review."
        elif result.verified and transaction is not None:
            response["message"] = (
                f"The verified amount ({money_str(result.verified_amount)}) does not cover the "
                f"recharge ({money_str(transaction.amount)}). The payment will be reviewed manually."
            )
        elif result.verified:
            response["message"] = "Payment verified"
        else:
            response["message"] = interpret_verification_error(result.code, result.message)

        return response

    async def _call_verifier(self, request: VerificationRequest) -> VerificationResult:
        # 외부 검증 호출 (시간 제한 초과 시 재시도 가능한 오류)
        try:
            return await asyncio.wait_for(self.verifier.verify(request), self.verification_timeout)
        except asyncio.TimeoutError:
            logger.warning("payment_verification_timeout", reference=request.reference,
                           timeout=self.verification_timeout)
            raise TransportError(errmsg.VERIFIER_UNAVAILABLE, code="VERIFIER_TIMEOUT")

    def get_pending_recharges(self, user_id: str) -> Dict[str, Any]:
        # 검토 대기 중인 충전 요청 목록
        pending = [
            transaction.to_dict()
            for transaction in self.balance_repo.get_transactions(user_id, limit=100)
            if transaction.transaction_type == TransactionType.RECHARGE and transaction.awaiting_credit()
        ]
        return {"success": True, "transactions": pending}

    def get_verification_history(self, user_id: str) -> Dict[str, Any]:
        return {"success": True, "verifications": self.verification_repo.get_verifications(user_id)}
