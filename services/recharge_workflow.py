"""
Recharge workflow - client-side state machine for topping up the wallet

    SELECT_METHOD -> VERIFY_PAYMENT -> APPROVED | PENDING_REVIEW | REJECTED
    (any step before an outcome) -> CANCELLED

REJECTED is recoverable: back() returns to SELECT_METHOD for a new attempt.
Each call to a collaborator is awaited while the workflow is marked in
flight; any other action during that time is refused.
"""
import asyncio
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum, auto
from typing import Any, Dict, List, Optional

import structlog

from models.money import ZERO, parse_decimal
from models.order import PaymentMethod
from models.recharge import CompanyPaymentMethod, TransactionStatus
from .balance_service import BalanceService
from .errors import (
    errmsg, StorefrontError, TermsNotAcceptedError, TransportError, ValidationError, WorkflowError
)
from .recharge_service import RechargeService

logger = structlog.get_logger()

QUICK_AMOUNTS = (Decimal("10"), Decimal("25"), Decimal("50"), Decimal("100"), Decimal("200"))


class WorkflowState(Enum):
    """Steps of one recharge attempt."""

    SELECT_METHOD = auto()
    VERIFY_PAYMENT = auto()
    APPROVED = auto()
    PENDING_REVIEW = auto()
    REJECTED = auto()
    CANCELLED = auto()


OUTCOME_STATES = frozenset({
    WorkflowState.APPROVED, WorkflowState.PENDING_REVIEW,
    WorkflowState.REJECTED, WorkflowState.CANCELLED,
})

# 트랜잭션 상태 -> 워크플로 결과
_OUTCOME_BY_STATUS = {
    TransactionStatus.APPROVED: WorkflowState.APPROVED,
    TransactionStatus.REJECTED: WorkflowState.REJECTED,
    TransactionStatus.PENDING: WorkflowState.PENDING_REVIEW,
}


class RechargeWorkflow:
    """
    Drives one customer's wallet recharge.

    The workflow owns no persistence: transactions are created, verified and
    credited through the RechargeService, and the terms gate is read from the
    BalanceService once per instance.
    """

    def __init__(self, user_id: str, balance_service: BalanceService,
                 recharge_service: RechargeService, min_amount: Decimal = Decimal("1"),
                 max_amount: Decimal = Decimal("1000"), amount_step: Optional[Decimal] = None):
        self.user_id = user_id
        self.balance_service = balance_service
        self.recharge_service = recharge_service
        self.min_amount = min_amount
        self.max_amount = max_amount
        self.amount_step = amount_step

        self.state = WorkflowState.SELECT_METHOD
        self.amount: Optional[Decimal] = None
        self.method: Optional[CompanyPaymentMethod] = None
        self.reference = ""
        self.transaction_id: Optional[str] = None
        self.transaction_key: Optional[tuple] = None
        self.last_error: Optional[str] = None
        self.message: Optional[str] = None

        self._in_flight = False
        self._terms_accepted: Optional[bool] = None

    # -- guards --

    def _require_terms(self) -> None:
        if self._terms_accepted is None:
            self._terms_accepted = self.balance_service.has_accepted_terms(self.user_id)
        if not self._terms_accepted:
            raise TermsNotAcceptedError(errmsg.TERMS_NOT_ACCEPTED, code="TERMS_NOT_ACCEPTED",
                                        action="accept_terms")

    def _require(self, *states: WorkflowState) -> None:
        if self._in_flight:
            raise WorkflowError(errmsg.REQUEST_IN_FLIGHT, code="REQUEST_IN_FLIGHT")
        self._require_terms()
        if self.state not in states:
            raise WorkflowError(errmsg.INVALID_TRANSITION, code="INVALID_TRANSITION",
                                details={"state": self.state.name})

    def _fail(self, error: StorefrontError) -> None:
        self.last_error = error.message
        raise error

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def is_finished(self) -> bool:
        return self.state in OUTCOME_STATES and self.state != WorkflowState.REJECTED

    # -- amount and method --

    def quick_amounts(self) -> List[Decimal]:
        return [amount for amount in QUICK_AMOUNTS if self.min_amount <= amount <= self.max_amount]

    def available_methods(self) -> List[CompanyPaymentMethod]:
        return [method for method in self.recharge_service.active_methods()
                if method.type != PaymentMethod.WALLET]

    def select_amount(self, value: Any) -> Decimal:
        # 금액을 단위로 반올림하고 최소/최대 범위로 제한
        self._require(WorkflowState.SELECT_METHOD)
        amount = parse_decimal(value)
        if amount is None or amount <= ZERO:
            self._fail(ValidationError(errmsg.INVALID_AMOUNT, code="INVALID_AMOUNT"))

        if self.amount_step:
            steps = (amount / self.amount_step).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            amount = steps * self.amount_step
        self.amount = min(max(amount, self.min_amount), self.max_amount)
        self.last_error = None
        return self.amount

    def select_method(self, method: Any) -> CompanyPaymentMethod:
        # 결제 수단 ID 또는 유형으로 선택
        self._require(WorkflowState.SELECT_METHOD)
        key = method.value if isinstance(method, PaymentMethod) else method
        for candidate in self.available_methods():
            if candidate.id == key or candidate.type.value == key:
                self.method = candidate
                self.last_error = None
                return candidate
        self._fail(ValidationError(errmsg.PAYMENT_METHOD_UNAVAILABLE, code="PAYMENT_METHOD_UNAVAILABLE"))

    def enter_reference(self, reference: Optional[str]) -> None:
        self._require(WorkflowState.SELECT_METHOD)
        self.reference = (reference or "").strip()

    # -- transitions --

    async def proceed(self) -> WorkflowState:
        """SELECT_METHOD -> VERIFY_PAYMENT, creating the pending recharge."""
        self._require(WorkflowState.SELECT_METHOD)

        if self.amount is None or self.amount <= ZERO:
            self._fail(ValidationError(errmsg.INVALID_AMOUNT, code="INVALID_AMOUNT"))
        if self.method is None:
            self._fail(ValidationError(errmsg.PAYMENT_METHOD_REQUIRED, code="PAYMENT_METHOD_REQUIRED"))
        if not self.method.supports_auto_verification and not self.reference:
            self._fail(ValidationError(errmsg.REFERENCE_REQUIRED, code="REFERENCE_REQUIRED"))

        # 같은 조건으로 되돌아왔다가 다시 진행하면 기존 대기 거래 재사용
        key = (self.amount, self.method.type, self.reference)
        if self.transaction_id is None or self.transaction_key != key:
            reference = None if self.method.supports_auto_verification else self.reference
            result = await self._call(
                asyncio.to_thread(self.recharge_service.create_recharge, self.user_id,
                                  self.amount, self.method.type.value, reference)
            )
            self.transaction_id = result["transaction"]["id"]
            self.transaction_key = key

        self.state = WorkflowState.VERIFY_PAYMENT
        self.last_error = None
        logger.info("recharge_workflow_step", user_id=self.user_id, state=self.state.name,
                    transaction_id=self.transaction_id)
        return self.state

    async def verify(self, payment: Optional[Dict[str, Any]] = None) -> WorkflowState:
        """VERIFY_PAYMENT -> APPROVED, PENDING_REVIEW or REJECTED.

        Manual methods always go to review. For mobile payments the declared
        payment data is sent to the verifier; a timeout or unreachable
        verifier leaves the recharge pending for review, and an already used
        reference rejects it.
        """
        self._require(WorkflowState.VERIFY_PAYMENT)

        if not self.method.supports_auto_verification:
            self._finish(WorkflowState.PENDING_REVIEW, "Your payment will be reviewed by our team")
            return self.state

        data = dict(payment or {})
        data.setdefault("amount", str(self.amount))
        try:
            result = await self._call(
                self.recharge_service.verify_mobile_payment(
                    self.user_id, data, context="RECHARGE", transaction_id=self.transaction_id)
            )
        except TransportError as e:
            self._finish(WorkflowState.PENDING_REVIEW, e.message)
            return self.state
        except ValidationError as e:
            # 이미 사용된 참조번호는 거절 결과로 처리 (back()으로 재시도 가능)
            if e.code != "DUPLICATE_REFERENCE":
                raise
            self.last_error = e.message
            self._finish(WorkflowState.REJECTED, e.message)
            return self.state

        status = TransactionStatus(result["transactionStatus"])
        outcome = _OUTCOME_BY_STATUS.get(status, WorkflowState.PENDING_REVIEW)
        if outcome == WorkflowState.REJECTED:
            self.last_error = result["message"]
        self._finish(outcome, result["message"])
        return self.state

    def back(self) -> WorkflowState:
        # 이전 단계로 이동 (요청 처리 중이거나 확정된 결과에서는 불가)
        self._require(WorkflowState.VERIFY_PAYMENT, WorkflowState.REJECTED)
        if self.state == WorkflowState.REJECTED:
            self.transaction_id = None
            self.transaction_key = None
            self.reference = ""
        self.state = WorkflowState.SELECT_METHOD
        self.message = None
        return self.state

    def cancel(self) -> WorkflowState:
        # 결과가 나오기 전이라면 취소 (잔액 적립 없음, 대기 거래는 그대로 유지)
        self._require(WorkflowState.SELECT_METHOD, WorkflowState.VERIFY_PAYMENT)
        self.state = WorkflowState.CANCELLED
        logger.info("recharge_workflow_cancelled", user_id=self.user_id,
                    transaction_id=self.transaction_id)
        return self.state

    async def _call(self, awaitable):
        self._in_flight = True
        try:
            return await awaitable
        except StorefrontError as e:
            self.last_error = e.message
            raise
        finally:
            self._in_flight = False

    def _finish(self, state: WorkflowState, message: Optional[str]) -> None:
        self.state = state
        self.message = message
        if state != WorkflowState.REJECTED:
            self.last_error = None
        logger.info("recharge_workflow_outcome", user_id=self.user_id, state=state.name,
                    transaction_id=self.transaction_id)
