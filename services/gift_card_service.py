"""
Gift card service - gift cards paid with wallet balance
"""
import secrets
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, Optional

import structlog

from models.balance import GiftCard, GiftCardStatus
from models.money import money_str, parse_decimal
from models.recharge import TransactionType
from database.wallet_repository import GiftCardRepository, UserRepository
from .balance_service import BalanceService, now_iso
from .errors import errmsg, BusinessRuleError, ValidationError

logger = structlog.get_logger()

PRESET_AMOUNTS = (Decimal("25"), Decimal("50"), Decimal("100"), Decimal("200"))

# 혼동되는 문자(0, O, 1, I) 제외
_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_CODE_ATTEMPTS = 10


def generate_gift_card_code() -> str:
    groups = ["".join(secrets.choice(_CODE_ALPHABET) for _ in range(4)) for _ in range(3)]
    return "GIFT-" + "-".join(groups)


class GiftCardService:
    # 기프트카드 구매 관련 비즈니스 로직

    def __init__(self, gift_card_repository: GiftCardRepository, user_repository: UserRepository,
                 balance_service: BalanceService, min_amount: Decimal = Decimal("5"),
                 max_amount: Decimal = Decimal("500"), amount_step: Decimal = Decimal("5")):
        self.gift_card_repo = gift_card_repository
        self.user_repo = user_repository
        self.balance_service = balance_service
        self.min_amount = min_amount
        self.max_amount = max_amount
        self.amount_step = amount_step

    def select_amount(self, value: Any) -> Decimal:
        # 직접 입력한 금액을 단위(step)로 반올림 후 최소/최대 범위로 제한
        amount = parse_decimal(value)
        if amount is None:
            raise ValidationError(errmsg.INVALID_AMOUNT, code="INVALID_AMOUNT")
        if self.amount_step:
            steps = (amount / self.amount_step).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            amount = steps * self.amount_step
        return min(max(amount, self.min_amount), self.max_amount)

    def get_amount_options(self, custom_amount: Optional[Any] = None) -> Dict[str, Any]:
        # 프리셋 금액과 범위, 직접 입력 금액이 있으면 보정된 금액 포함
        return {
            "success": True,
            "selectedAmount": (
                money_str(self.select_amount(custom_amount)) if custom_amount not in (None, "") else None
            ),
            "presets": [money_str(amount) for amount in PRESET_AMOUNTS],
            "min": money_str(self.min_amount),
            "max": money_str(self.max_amount),
            "step": money_str(self.amount_step)
        }

    def check_recipient(self, email: Optional[str]) -> Dict[str, Any]:
        # 수신자 이메일이 가입된 사용자인지 확인
        if not email or not email.strip():
            raise ValidationError(errmsg.RECIPIENT_EMAIL_REQUIRED, code="RECIPIENT_EMAIL_REQUIRED")
        user = self.user_repo.find_by_email(email)
        return {
            "success": True,
            "exists": user is not None,
            "user": {"name": user["name"], "email": user["email"]} if user else None
        }

    def invite_recipient(self, inviter_id: str, email: Optional[str]) -> Dict[str, Any]:
        # 미가입 수신자에게 초대장 생성
        if not email or "@" not in email:
            raise ValidationError(errmsg.RECIPIENT_EMAIL_REQUIRED, code="RECIPIENT_EMAIL_REQUIRED")
        invitation_id = self.user_repo.create_invitation(email, inviter_id)
        logger.info("recipient_invited", inviter_id=inviter_id, invitation_id=invitation_id)
        return {"success": True, "invitationId": invitation_id, "email": email.strip().lower()}

    def _unique_code(self) -> str:
        for _ in range(_CODE_ATTEMPTS):
            code = generate_gift_card_code()
            if not self.gift_card_repo.code_exists(code):
                return code
        raise BusinessRuleError("Could not generate a unique gift card code")

    def purchase(self, user_id: str, amount: Any, recipient_email: Optional[str],
                 message: str = "") -> Dict[str, Any]:
        # 지갑 잔액으로 기프트카드 구매 (수신자는 가입된 사용자여야 함)
        value = parse_decimal(amount)
        if value is None or value < self.min_amount or value > self.max_amount:
            raise ValidationError(errmsg.AMOUNT_OUT_OF_RANGE, code="AMOUNT_OUT_OF_RANGE",
                                  details={"min": money_str(self.min_amount),
                                           "max": money_str(self.max_amount)})

        if not self.check_recipient(recipient_email)["exists"]:
            raise BusinessRuleError(errmsg.RECIPIENT_NOT_REGISTERED, code="RECIPIENT_NOT_REGISTERED",
                                    action="invite_recipient")

        self.balance_service.ensure_sufficient(user_id, value)

        gift_card = GiftCard(
            id=str(uuid.uuid4()),
            code=self._unique_code(),
            amount=value,
            balance=value,
            purchaser_id=user_id,
            recipient_email=recipient_email.strip().lower(),
            status=GiftCardStatus.ACTIVE,
            created_at=now_iso(),
            message=message or ""
        )
        payment = self.balance_service.build_purchase(
            user_id, value, f"Gift card for {gift_card.recipient_email}",
            transaction_type=TransactionType.GIFT_CARD,
            metadata={"giftCardId": gift_card.id}
        )

        if not self.gift_card_repo.create_paid_with_balance(gift_card, payment):
            raise BusinessRuleError(errmsg.INSUFFICIENT_BALANCE, code="INSUFFICIENT_BALANCE",
                                    action="recharge_balance")

        logger.info("gift_card_purchased", user_id=user_id, gift_card_id=gift_card.id,
                    amount=str(value))
        return {"success": True, "giftCard": gift_card.to_dict()}

    def get_purchased(self, user_id: str) -> Dict[str, Any]:
        cards = self.gift_card_repo.get_purchased(user_id)
        return {"success": True, "giftCards": [card.to_dict() for card in cards]}
