"""
Balance service - customer wallet balance and terms acceptance
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, Optional

import structlog

from models.balance import TermsAcceptance, UserBalance
from models.money import ZERO, parse_decimal
from models.order import PaymentMethod
from models.recharge import RechargeTransaction, TransactionStatus, TransactionType
from database.wallet_repository import BalanceRepository
from .errors import (
    errmsg, BusinessRuleError, TermsNotAcceptedError, ValidationError
)

logger = structlog.get_logger()


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_positive_amount(value: Any) -> Decimal:
    amount = parse_decimal(value)
    if amount is None or amount <= ZERO:
        raise ValidationError(errmsg.INVALID_AMOUNT, code="INVALID_AMOUNT")
    return amount


class BalanceService:
    # 고객 지갑 잔액 관련 비즈니스 로직

    def __init__(self, balance_repository: BalanceRepository, terms_version: str = "1.0"):
        self.balance_repo = balance_repository
        self.terms_version = terms_version

    def get_balance(self, user_id: str) -> UserBalance:
        # 잔액 레코드가 없으면 0원 잔액 생성
        return self.balance_repo.get_or_create_balance(user_id)

    def get_balance_details(self, user_id: str, limit: int = 20) -> Dict[str, Any]:
        # 잔액과 최근 거래 내역
        balance = self.get_balance(user_id)
        transactions = self.balance_repo.get_transactions(user_id, limit)
        return {
            "success": True,
            "balance": balance.to_dict(),
            "transactions": [transaction.to_dict() for transaction in transactions]
        }

    def has_accepted_terms(self, user_id: str) -> bool:
        return self.balance_repo.get_terms_acceptance(user_id) is not None

    def require_terms(self, user_id: str) -> None:
        # 약관 미동의 시 지갑 기능 차단
        if not self.has_accepted_terms(user_id):
            raise TermsNotAcceptedError(errmsg.TERMS_NOT_ACCEPTED, code="TERMS_NOT_ACCEPTED",
                                        action="accept_terms")

    def get_terms_status(self, user_id: str) -> Dict[str, Any]:
        acceptance = self.balance_repo.get_terms_acceptance(user_id)
        return {
            "success": True,
            "hasAccepted": acceptance is not None,
            "acceptedAt": acceptance.accepted_at if acceptance else None,
            "termsVersion": acceptance.terms_version if acceptance else self.terms_version
        }

    def accept_terms(self, user_id: str, id_number: Optional[str], signature_data: Optional[str],
                     terms_version: Optional[str] = None, phone: Optional[str] = None,
                     address: Optional[str] = None) -> Dict[str, Any]:
        # 신분증 번호와 서명으로 약관 동의 (이미 동의한 경우 기존 기록 반환)
        if not id_number or not str(id_number).strip() or not signature_data:
            raise ValidationError(errmsg.TERMS_FIELDS_REQUIRED, code="TERMS_FIELDS_REQUIRED")

        existing = self.balance_repo.get_terms_acceptance(user_id)
        if existing is not None:
            return {"success": True, "alreadyAccepted": True, "acceptance": existing.to_dict()}

        acceptance = TermsAcceptance(
            user_id=user_id,
            id_number=str(id_number).strip(),
            signature_data=signature_data,
            terms_version=terms_version or self.terms_version,
            accepted_at=now_iso(),
            phone=phone,
            address=address
        )
        self.balance_repo.save_terms_acceptance(acceptance)
        logger.info("terms_accepted", user_id=user_id, terms_version=acceptance.terms_version)

        return {"success": True, "alreadyAccepted": False, "acceptance": acceptance.to_dict()}

    def build_purchase(self, user_id: str, amount: Decimal, description: str,
                       transaction_type: TransactionType = TransactionType.PURCHASE,
                       metadata: Optional[Dict[str, Any]] = None) -> RechargeTransaction:
        # 잔액 결제 거래 레코드 생성 (저장은 호출자 담당)
        timestamp = now_iso()
        return RechargeTransaction(
            id=str(uuid.uuid4()),
            user_id=user_id,
            amount=amount,
            payment_method=PaymentMethod.WALLET,
            reference_code=None,
            status=TransactionStatus.COMPLETED,
            transaction_type=transaction_type,
            description=description,
            metadata=metadata or {},
            created_at=timestamp,
            updated_at=timestamp
        )

    def ensure_sufficient(self, user_id: str, amount: Decimal) -> UserBalance:
        # 잔액이 없거나 부족하면 충전 안내와 함께 거절
        if amount <= ZERO:
            # 결제 금액 0원은 잔액 없이 통과 (0원 차감이 가능하도록 잔액 레코드 생성)
            return self.get_balance(user_id)
        balance = self.balance_repo.get_balance(user_id)
        if balance is None or balance.balance <= ZERO:
            raise BusinessRuleError(errmsg.NO_BALANCE, code="NO_BALANCE", action="recharge_balance")
        if balance.balance < amount:
            raise BusinessRuleError(errmsg.INSUFFICIENT_BALANCE, code="INSUFFICIENT_BALANCE",
                                    action="recharge_balance",
                                    details={"available": str(balance.balance), "required": str(amount)})
        return balance

    def deduct(self, user_id: str, amount: Any, description: str = "",
               order_id: Optional[str] = None) -> Dict[str, Any]:
        # 잔액 차감 및 구매 거래 기록
        value = parse_positive_amount(amount)
        self.ensure_sufficient(user_id, value)

        metadata = {"orderId": order_id} if order_id else {}
        transaction = self.build_purchase(user_id, value, description or "Purchase", metadata=metadata)
        if not self.balance_repo.deduct(user_id, transaction):
            raise BusinessRuleError(errmsg.INSUFFICIENT_BALANCE, code="INSUFFICIENT_BALANCE",
                                    action="recharge_balance")

        logger.info("balance_deducted", user_id=user_id, amount=str(value))
        return {
            "success": True,
            "transaction": transaction.to_dict(),
            "balance": self.get_balance(user_id).to_dict()
        }
