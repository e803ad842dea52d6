"""
Database repository classes for wallets and gift cards
"""
import sqlite3
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Dict, Any

import structlog

from models.order import PaymentMethod
from models.recharge import (
    RechargeTransaction, TransactionStatus, TransactionType, CompanyPaymentMethod
)
from models.balance import UserBalance, TermsAcceptance, GiftCard, GiftCardStatus
from .connection import DatabaseConnection

logger = structlog.get_logger()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def insert_transaction(cursor: sqlite3.Cursor, transaction: RechargeTransaction) -> None:
    # 거래 내역 한 건 삽입 (호출자가 커밋)
    cursor.execute("""
    INSERT INTO Transactions (
        transaction_id, user_id, type, status, amount, payment_method, reference,
        description, metadata, created_at, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        transaction.id, transaction.user_id, transaction.transaction_type.value,
        transaction.status.value, str(transaction.amount),
        transaction.payment_method.value if transaction.payment_method else None,
        transaction.reference_code, transaction.description,
        json.dumps(transaction.metadata), transaction.created_at, transaction.updated_at
    ))


def debit_balance(cursor: sqlite3.Cursor, user_id: str, amount: Decimal) -> bool:
    # 잔액이 충분할 때만 차감 (같은 트랜잭션 안에서 호출)
    cursor.execute("SELECT balance, total_spent FROM User_Balances WHERE user_id = ?", (user_id,))
    row = cursor.fetchone()
    if not row or Decimal(row[0]) < amount:
        return False

    cursor.execute("""
    UPDATE User_Balances SET balance = ?, total_spent = ? WHERE user_id = ? AND balance = ?
    """, (str(Decimal(row[0]) - amount), str(Decimal(row[1]) + amount), user_id, row[0]))
    return cursor.rowcount > 0


class BalanceRepository:
    # 지갑 잔액, 거래 내역, 약관 동의 데이터 접근 계층

    _TX_COLUMNS = """transaction_id, user_id, type, status, amount, payment_method, reference,
                     description, metadata, created_at, updated_at"""

    def __init__(self, db_connection: DatabaseConnection):
        # DatabaseConnection 인스턴스 주입
        self.db = db_connection

    @staticmethod
    def _row_to_transaction(row) -> RechargeTransaction:
        return RechargeTransaction(
            id=row[0],
            user_id=row[1],
            transaction_type=TransactionType(row[2]),
            status=TransactionStatus(row[3]),
            amount=Decimal(row[4]),
            payment_method=PaymentMethod(row[5]) if row[5] else None,
            reference_code=row[6],
            description=row[7] or "",
            metadata=json.loads(row[8]) if row[8] else {},
            created_at=row[9],
            updated_at=row[10]
        )

    def get_balance(self, user_id: str) -> Optional[UserBalance]:
        # 사용자 지갑 잔액 조회
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT balance, total_recharges, total_spent, currency
            FROM User_Balances WHERE user_id = ?
            """, (user_id,))
            row = cursor.fetchone()

            if not row:
                return None

            return UserBalance(
                user_id=user_id,
                balance=Decimal(row[0]),
                total_recharges=Decimal(row[1]),
                total_spent=Decimal(row[2]),
                currency=row[3]
            )

    def get_or_create_balance(self, user_id: str, currency: str = "USD") -> UserBalance:
        # 잔액 레코드가 없으면 0으로 생성
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR IGNORE INTO User_Balances (user_id, balance, total_recharges, total_spent, currency)
            VALUES (?, '0', '0', '0', ?)
            """, (user_id, currency))
            conn.commit()
        return self.get_balance(user_id)

    def create_transaction(self, transaction: RechargeTransaction) -> bool:
        # 새로운 거래 내역 저장
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                insert_transaction(cursor, transaction)
                conn.commit()
                return True
            except sqlite3.Error as e:
                logger.error("transaction_create_failed", transaction_id=transaction.id, error=str(e))
                return False

    def get_transaction(self, transaction_id: str) -> Optional[RechargeTransaction]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {self._TX_COLUMNS} FROM Transactions WHERE transaction_id = ?",
                           (transaction_id,))
            row = cursor.fetchone()
            return self._row_to_transaction(row) if row else None

    def get_transactions(self, user_id: str, limit: int = 20) -> List[RechargeTransaction]:
        # 최근 거래 내역 조회 (최신순)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
            SELECT {self._TX_COLUMNS} FROM Transactions
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """, (user_id, limit))
            return [self._row_to_transaction(row) for row in cursor.fetchall()]

    def update_transaction_status(self, transaction_id: str, expected: TransactionStatus,
                                  new_status: TransactionStatus,
                                  metadata: Optional[Dict[str, Any]] = None,
                                  reference: Optional[str] = None) -> bool:
        # 현재 상태가 expected일 때만 상태 변경 (동시 변경 방지)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            UPDATE Transactions
            SET status = ?, metadata = COALESCE(?, metadata), reference = COALESCE(?, reference),
                updated_at = ?
            WHERE transaction_id = ? AND status = ?
            """, (
                new_status.value, json.dumps(metadata) if metadata is not None else None,
                reference, _now_iso(), transaction_id, expected.value
            ))
            conn.commit()
            return cursor.rowcount > 0

    def approve_recharge(self, transaction_id: str, metadata: Dict[str, Any]) -> bool:
        # 대기(또는 검증 완료) 충전을 승인하고 같은 트랜잭션에서 잔액 적립
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            try:
                cursor.execute("""
                SELECT user_id, amount, status FROM Transactions
                WHERE transaction_id = ? AND status IN (?, ?) AND type = ?
                """, (transaction_id, TransactionStatus.PENDING.value,
                      TransactionStatus.VERIFIED.value, TransactionType.RECHARGE.value))
                row = cursor.fetchone()
                if not row:
                    return False

                user_id, amount, current_status = row[0], Decimal(row[1]), row[2]

                cursor.execute("""
                UPDATE Transactions SET status = ?, metadata = ?, updated_at = ?
                WHERE transaction_id = ? AND status = ?
                """, (
                    TransactionStatus.APPROVED.value, json.dumps(metadata), _now_iso(),
                    transaction_id, current_status
                ))
                if cursor.rowcount == 0:
                    conn.rollback()
                    return False

                cursor.execute("""
                INSERT OR IGNORE INTO User_Balances (user_id, balance, total_recharges, total_spent, currency)
                VALUES (?, '0', '0', '0', 'USD')
                """, (user_id,))
                cursor.execute("SELECT balance, total_recharges FROM User_Balances WHERE user_id = ?",
                               (user_id,))
                balance_row = cursor.fetchone()
                cursor.execute("""
                UPDATE User_Balances SET balance = ?, total_recharges = ? WHERE user_id = ?
                """, (
                    str(Decimal(balance_row[0]) + amount),
                    str(Decimal(balance_row[1]) + amount),
                    user_id
                ))

                conn.commit()
                return True

            except sqlite3.Error as e:
                conn.rollback()
                logger.error("recharge_approve_failed", transaction_id=transaction_id, error=str(e))
                return False

    def deduct(self, user_id: str, transaction: RechargeTransaction) -> bool:
        # 잔액 차감과 구매 거래 기록을 한 번에 저장
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            try:
                if not debit_balance(cursor, user_id, transaction.amount):
                    conn.rollback()
                    return False
                insert_transaction(cursor, transaction)
                conn.commit()
                return True
            except sqlite3.Error as e:
                conn.rollback()
                logger.error("balance_deduct_failed", user_id=user_id, error=str(e))
                return False

    def get_terms_acceptance(self, user_id: str) -> Optional[TermsAcceptance]:
        # 약관 동의 여부 조회
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT id_number, signature_data, terms_version, accepted_at, phone, address
            FROM Terms_Acceptances WHERE user_id = ?
            """, (user_id,))
            row = cursor.fetchone()

            if not row:
                return None

            return TermsAcceptance(
                user_id=user_id,
                id_number=row[0],
                signature_data=row[1],
                terms_version=row[2],
                accepted_at=row[3],
                phone=row[4],
                address=row[5]
            )

    def save_terms_acceptance(self, acceptance: TermsAcceptance) -> bool:
        # 이미 동의한 경우 기존 기록 유지
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR IGNORE INTO Terms_Acceptances (
                user_id, id_number, signature_data, terms_version, phone, address, accepted_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                acceptance.user_id, acceptance.id_number, acceptance.signature_data,
                acceptance.terms_version, acceptance.phone, acceptance.address, acceptance.accepted_at
            ))
            conn.commit()
            return cursor.rowcount > 0


class PaymentMethodRepository:
    # 매장 결제 수단 데이터 접근 계층

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def get_active_methods(self) -> List[CompanyPaymentMethod]:
        # 활성화된 결제 수단 목록 (정렬 순서대로)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT method_id, type, name, details, is_active FROM Payment_Methods
            WHERE is_active = 1
            ORDER BY sort_order, name
            """)

            methods = []
            for row in cursor.fetchall():
                details = json.loads(row[3]) if row[3] else {}
                methods.append(CompanyPaymentMethod(
                    id=row[0],
                    type=PaymentMethod(row[1]),
                    name=row[2],
                    is_active=bool(row[4]),
                    **details
                ))
            return methods

    def save_method(self, method: CompanyPaymentMethod, sort_order: int = 0) -> bool:
        details = {
            "bank_name": method.bank_name,
            "phone": method.phone,
            "holder_id": method.holder_id,
            "holder_name": method.holder_name,
            "email": method.email,
            "wallet_address": method.wallet_address,
            "network": method.network,
            "display_note": method.display_note,
            "qr_code_image": method.qr_code_image
        }
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR REPLACE INTO Payment_Methods (method_id, type, name, details, is_active, sort_order)
            VALUES (?, ?, ?, ?, ?, ?)
            """, (
                method.id, method.type.value, method.name,
                json.dumps({key: value for key, value in details.items() if value is not None}),
                int(method.is_active), sort_order
            ))
            conn.commit()
            return True


class VerificationRepository:
    # 모바일 결제 검증 기록과 은행 거래 원장 데이터 접근 계층

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def reference_already_verified(self, reference: str) -> bool:
        # 성공적으로 검증된 적이 있는 참조번호인지 확인
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT 1 FROM Payment_Verifications WHERE reference = ? AND verified = 1 LIMIT 1
            """, (reference,))
            return cursor.fetchone() is not None

    def record_verification(self, user_id: str, record: Dict[str, Any]) -> str:
        # 검증 요청과 결과 기록, 생성된 ID 반환
        verification_id = str(uuid.uuid4())
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT INTO Payment_Verifications (
                verification_id, user_id, payer_phone, bank_code, reference, payment_date,
                requested_amount, verified_amount, response_code, response_message, verified,
                context, transaction_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                verification_id, user_id, record["payer_phone"], record["bank_code"],
                record["reference"], record["payment_date"], record["requested_amount"],
                record.get("verified_amount"), record["response_code"],
                record.get("response_message"), int(record.get("verified", False)),
                record.get("context", "GENERAL"), record.get("transaction_id"), _now_iso()
            ))
            conn.commit()
        return verification_id

    def get_verifications(self, user_id: str) -> List[Dict[str, Any]]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT verification_id, reference, requested_amount, verified_amount,
                   response_code, verified, context, transaction_id, created_at
            FROM Payment_Verifications WHERE user_id = ?
            ORDER BY created_at DESC
            """, (user_id,))

            return [
                {
                    "id": row[0],
                    "reference": row[1],
                    "requestedAmount": row[2],
                    "verifiedAmount": row[3],
                    "code": row[4],
                    "verified": bool(row[5]),
                    "context": row[6],
                    "transactionId": row[7],
                    "createdAt": row[8]
                }
                for row in cursor.fetchall()
            ]

    def add_bank_movement(self, reference: str, payer_phone: str, bank_code: str,
                          payment_date: str, amount: Decimal) -> bool:
        # 은행 대조용 입금 내역 등록 (관리자 또는 동기화 작업)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR REPLACE INTO Bank_Movements (reference, payer_phone, bank_code, payment_date, amount)
            VALUES (?, ?, ?, ?, ?)
            """, (reference, payer_phone, bank_code, payment_date, str(amount)))
            conn.commit()
            return True

    def find_bank_movement(self, reference: str) -> Optional[Dict[str, Any]]:
        # 참조번호로 은행 입금 내역 조회
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT reference, payer_phone, bank_code, payment_date, amount
            FROM Bank_Movements WHERE reference = ?
            """, (reference,))
            row = cursor.fetchone()

            if not row:
                return None

            return {
                "reference": row[0],
                "payer_phone": row[1],
                "bank_code": row[2],
                "payment_date": row[3],
                "amount": Decimal(row[4])
            }


class GiftCardRepository:
    # 기프트카드 데이터 접근 계층

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def code_exists(self, code: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM Gift_Cards WHERE code = ?", (code,))
            return cursor.fetchone() is not None

    def create_paid_with_balance(self, gift_card: GiftCard, payment: RechargeTransaction) -> bool:
        # 잔액 차감, 거래 기록, 기프트카드 생성을 한 트랜잭션으로 처리
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            try:
                if not debit_balance(cursor, gift_card.purchaser_id, gift_card.amount):
                    conn.rollback()
                    return False

                insert_transaction(cursor, payment)
                cursor.execute("""
                INSERT INTO Gift_Cards (
                    gift_card_id, code, amount, balance, purchaser_id, recipient_email,
                    message, status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    gift_card.id, gift_card.code, str(gift_card.amount), str(gift_card.balance),
                    gift_card.purchaser_id, gift_card.recipient_email, gift_card.message,
                    gift_card.status.value, gift_card.created_at
                ))

                conn.commit()
                return True

            except sqlite3.Error as e:
                conn.rollback()
                logger.error("gift_card_create_failed", code=gift_card.code, error=str(e))
                return False

    def get_purchased(self, purchaser_id: str) -> List[GiftCard]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT gift_card_id, code, amount, balance, recipient_email, message, status, created_at
            FROM Gift_Cards WHERE purchaser_id = ?
            ORDER BY created_at DESC
            """, (purchaser_id,))

            return [
                GiftCard(
                    id=row[0],
                    code=row[1],
                    amount=Decimal(row[2]),
                    balance=Decimal(row[3]),
                    purchaser_id=purchaser_id,
                    recipient_email=row[4],
                    message=row[5] or "",
                    status=GiftCardStatus(row[6]),
                    created_at=row[7]
                )
                for row in cursor.fetchall()
            ]


class UserRepository:
    # 사용자 및 초대 데이터 접근 계층

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def save_user(self, user_id: str, email: str, name: str = "") -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("INSERT OR REPLACE INTO Users (user_id, email, name) VALUES (?, ?, ?)",
                           (user_id, email.strip().lower(), name))
            conn.commit()
            return True

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        # 이메일로 사용자 조회 (대소문자 무시)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT user_id, email, name FROM Users WHERE email = ?",
                           (email.strip().lower(),))
            row = cursor.fetchone()
            if not row:
                return None
            return {"id": row[0], "email": row[1], "name": row[2]}

    def create_invitation(self, email: str, invited_by: str) -> str:
        invitation_id = str(uuid.uuid4())
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT INTO Invitations (invitation_id, email, invited_by, created_at) VALUES (?, ?, ?, ?)
            """, (invitation_id, email.strip().lower(), invited_by, _now_iso()))
            conn.commit()
        return invitation_id
