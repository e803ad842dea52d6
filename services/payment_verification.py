"""
Mobile payment verification - input validation and the verifier contract

A mobile payment is confirmed by matching the payer's phone, bank, reference,
date and amount against the store's bank movements. The bank integration is
behind the PaymentVerifier interface; LedgerPaymentVerifier answers from the
Bank_Movements reconciliation table.
"""
import asyncio
import re
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Any, Optional

import structlog

from models.money import ZERO, parse_decimal
from models.recharge import VerificationRequest, VerificationResult, VerificationOutcome
from database.wallet_repository import VerificationRepository
from .errors import errmsg, ValidationError

logger = structlog.get_logger()

RESPONSE_SUCCESS = 1000
RESPONSE_NOT_FOUND = 1010
RESPONSE_BAD_REQUEST = 400
RESPONSE_UNAVAILABLE = 500
RESPONSE_DUPLICATE_REFERENCE = 4001

BANK_CODES = {
    "0102": "Banco de Venezuela",
    "0104": "Venezolano de Credito",
    "0105": "Mercantil",
    "0108": "Provincial",
    "0114": "Bancaribe",
    "0115": "Exterior",
    "0128": "Caroni",
    "0134": "Banesco",
    "0137": "Sofitasa",
    "0138": "Banco Plaza",
    "0146": "Bangente",
    "0151": "Fondo Comun",
    "0156": "100% Banco",
    "0157": "Delsur",
    "0163": "Banco del Tesoro",
    "0166": "Banco Agricola de Venezuela",
    "0168": "Bancrecer",
    "0169": "Mi Banco",
    "0171": "Banco Activo",
    "0172": "Bancamiga",
    "0173": "Banco Internacional de Desarrollo",
    "0174": "Banplus",
    "0175": "Banco Bicentenario",
    "0177": "BANFANB",
    "0191": "BNC",
}

_PHONE_RE = re.compile(r"^04\d{9}$")
_REFERENCE_RE = re.compile(r"^\d{4,8}$")
_ID_NUMBER_RE = re.compile(r"^[VE]\d{6,9}$")
_SEPARATORS_RE = re.compile(r"[-\s]")


def normalize_phone(phone: str) -> str:
    return _SEPARATORS_RE.sub("", phone or "")


def is_valid_phone(phone: str) -> bool:
    # 04XX-XXXXXXX 또는 04XXXXXXXXX
    return bool(_PHONE_RE.match(normalize_phone(phone)))


def normalize_reference(reference: str) -> str:
    return re.sub(r"\s", "", reference or "")


def is_valid_reference(reference: str) -> bool:
    return bool(_REFERENCE_RE.match(normalize_reference(reference)))


def normalize_id_number(id_number: str) -> str:
    # 숫자로 시작하면 V 접두사 추가
    cleaned = _SEPARATORS_RE.sub("", id_number or "").upper()
    if cleaned[:1].isdigit():
        return "V" + cleaned
    return cleaned


def is_valid_id_number(id_number: str) -> bool:
    return bool(_ID_NUMBER_RE.match(_SEPARATORS_RE.sub("", id_number or "").upper()))


def parse_verification_request(data: Dict[str, Any]) -> VerificationRequest:
    """Validate the declared payment data; nothing reaches the verifier on failure"""
    phone = data.get("payerPhone")
    bank_code = data.get("bankCode")
    reference = data.get("reference")
    payment_date = data.get("paymentDate")
    amount = data.get("amount")

    if not phone or not bank_code or not reference or not payment_date or amount in (None, ""):
        raise ValidationError(errmsg.MISSING_VERIFICATION_FIELDS, code="MISSING_FIELDS")

    if not is_valid_phone(phone):
        raise ValidationError(errmsg.INVALID_PHONE, code="INVALID_PHONE")

    if not is_valid_reference(reference):
        raise ValidationError(errmsg.INVALID_REFERENCE, code="INVALID_REFERENCE")

    value = parse_decimal(amount)
    if value is None or value <= ZERO:
        raise ValidationError(errmsg.INVALID_AMOUNT, code="INVALID_AMOUNT")

    if isinstance(payment_date, date):
        parsed_date = payment_date
    else:
        try:
            parsed_date = date.fromisoformat(str(payment_date)[:10])
        except ValueError:
            raise ValidationError("Payment date must be YYYY-MM-DD", code="INVALID_DATE")

    id_number = data.get("payerIdNumber")
    if id_number:
        if not is_valid_id_number(normalize_id_number(id_number)):
            raise ValidationError(errmsg.INVALID_ID_NUMBER, code="INVALID_ID_NUMBER")
        id_number = normalize_id_number(id_number)

    return VerificationRequest(
        payer_phone=normalize_phone(phone),
        bank_code=str(bank_code).strip(),
        reference=normalize_reference(reference),
        payment_date=parsed_date,
        amount=value,
        payer_id_number=id_number or None
    )


_FRIENDLY_MESSAGES = (
    (("already used", "duplicate"),
     "This payment reference was already used. The same reference cannot pay for several transactions."),
    (("does not exist", "not found"),
     "Payment not found. Check the reference, date, amount and the phone the payment was sent from."),
    (("mandatory", "required", "null"),
     "Some required data is missing. Please fill in every field."),
    (("not affiliated", "merchant not registered"),
     "Store payment configuration error. Please contact support."),
    (("id number", "identification"),
     "The id number does not match the account holder."),
    (("does not match",),
     "The transaction exists but does not match the data provided. Check the amount, reference and date."),
    (("amount",),
     "The payment amount does not match. Check that you sent exactly the requested amount."),
    (("date",),
     "The payment date does not match. Use the date the payment was made."),
)


def interpret_verification_error(code: int, message: str) -> str:
    """Map a verifier answer to a message the customer can act on"""
    if code == RESPONSE_SUCCESS:
        return "Payment verified"

    lowered = (message or "").lower()
    for needles, friendly in _FRIENDLY_MESSAGES:
        if any(needle in lowered for needle in needles):
            return friendly

    if code == RESPONSE_NOT_FOUND:
        return "Payment not found. Check the data and try again."
    if code == RESPONSE_BAD_REQUEST:
        return "The verification request was invalid. Check the data and try again."
    return message or "The payment could not be verified."


class PaymentVerifier(ABC):
    """External payment confirmation collaborator.

    Implementations raise TransportError when the bank cannot be reached.
    """

    @abstractmethod
    async def verify(self, request: VerificationRequest) -> VerificationResult:
        raise NotImplementedError


class LedgerPaymentVerifier(PaymentVerifier):
    """Confirms payments against the Bank_Movements reconciliation table"""

    def __init__(self, verification_repository: VerificationRepository):
        self.verification_repo = verification_repository

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        movement = await asyncio.to_thread(
            self.verification_repo.find_bank_movement, request.reference
        )

        if movement is None:
            return VerificationResult(
                outcome=VerificationOutcome.REJECTED,
                code=RESPONSE_NOT_FOUND,
                message="Requested record does not exist"
            )

        if (movement["payer_phone"] != request.payer_phone
                or movement["bank_code"] != request.bank_code
                or movement["payment_date"] != request.payment_date.isoformat()):
            return VerificationResult(
                outcome=VerificationOutcome.REJECTED,
                code=RESPONSE_NOT_FOUND,
                message="Transaction found but it does not match the provided data"
            )

        logger.debug("bank_movement_matched", reference=request.reference)
        return VerificationResult(
            outcome=VerificationOutcome.CONFIRMED,
            code=RESPONSE_SUCCESS,
            message="Payment verified",
            verified_amount=movement["amount"]
        )


def verification_record(request: VerificationRequest, result: Optional[VerificationResult],
                        context: str, transaction_id: Optional[str]) -> Dict[str, Any]:
    # 검증 기록 저장용 딕셔너리
    return {
        "payer_phone": request.payer_phone,
        "bank_code": request.bank_code,
        "reference": request.reference,
        "payment_date": request.payment_date.isoformat(),
        "requested_amount": str(request.amount),
        "verified_amount": (
            str(result.verified_amount)
            if result is not None and result.verified and result.verified_amount is not None else None
        ),
        "response_code": result.code if result is not None else RESPONSE_UNAVAILABLE,
        "response_message": result.message if result is not None else errmsg.VERIFIER_UNAVAILABLE,
        "verified": result is not None and result.verified,
        "context": context,
        "transaction_id": transaction_id
    }
