"""
Database connection management
"""
import sqlite3
from contextlib import contextmanager
from typing import Generator

import structlog

logger = structlog.get_logger()


class DatabaseConnection:
    # 데이터베이스 연결을 관리하는 클래스

    def __init__(self, db_path: str = "storefront.db"):
        # 데이터베이스 파일 경로 설정 및 초기화
        self.db_path = db_path
        self.init_database()

    def init_database(self):
        # 데이터베이스 연결 초기화 및 필요한 테이블 생성
        with self.get_connection() as conn:
            cursor = conn.cursor()

            # 상품 카탈로그
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Categories (
                category_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                slug TEXT
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Products (
                product_id TEXT PRIMARY KEY,
                product_name TEXT NOT NULL,
                product_type TEXT NOT NULL DEFAULT 'PHYSICAL',
                price TEXT NOT NULL,
                description TEXT,
                category_id TEXT,
                stock_quantity INTEGER NOT NULL DEFAULT 0,
                weight_kg TEXT NOT NULL DEFAULT '0',
                is_consolidable INTEGER NOT NULL DEFAULT 1,
                shipping_cost TEXT NOT NULL DEFAULT '0',
                is_active INTEGER NOT NULL DEFAULT 1
            )
            ''')

            # 세션별 장바구니 (같은 라인 ID는 한 행으로 병합)
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Cart (
                session_id TEXT NOT NULL,
                line_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                name TEXT NOT NULL,
                unit_price TEXT NOT NULL,
                quantity INTEGER NOT NULL DEFAULT 1,
                product_type TEXT NOT NULL,
                weight_kg TEXT NOT NULL DEFAULT '0',
                is_consolidable INTEGER NOT NULL DEFAULT 1,
                fixed_shipping_cost TEXT NOT NULL DEFAULT '0',
                stock INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (session_id, line_id)
            )
            ''')

            # 주문 정보를 저장하는 테이블 생성
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Orders (
                order_id TEXT PRIMARY KEY,
                order_number TEXT NOT NULL UNIQUE,
                user_id TEXT NOT NULL,
                subtotal TEXT NOT NULL,
                discount TEXT NOT NULL,
                shipping TEXT NOT NULL,
                total TEXT NOT NULL,
                payment_method TEXT NOT NULL,
                delivery_method TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'PENDING',
                applied_discount_ids TEXT,
                paid_at TEXT,
                created_at TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Order_Items (
                order_item_id TEXT PRIMARY KEY,
                order_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                product_name TEXT NOT NULL,
                quantity INTEGER NOT NULL,
                unit_price TEXT NOT NULL,
                line_total TEXT NOT NULL,
                FOREIGN KEY(order_id) REFERENCES Orders(order_id)
            )
            ''')

            # 고객별 상품 할인 요청
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Discounts (
                discount_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'PENDING',
                requested_percent TEXT NOT NULL,
                approved_percent TEXT,
                expires_at TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            ''')

            # 매장 설정 (단일 행)
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Store_Settings (
                settings_id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                updated_at TEXT
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Users (
                user_id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                name TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Invitations (
                invitation_id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                invited_by TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            ''')

            # 지갑 잔액 및 거래 내역
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS User_Balances (
                user_id TEXT PRIMARY KEY,
                balance TEXT NOT NULL DEFAULT '0',
                total_recharges TEXT NOT NULL DEFAULT '0',
                total_spent TEXT NOT NULL DEFAULT '0',
                currency TEXT NOT NULL DEFAULT 'USD'
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Transactions (
                transaction_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                status TEXT NOT NULL,
                amount TEXT NOT NULL,
                payment_method TEXT,
                reference TEXT,
                description TEXT,
                metadata TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Terms_Acceptances (
                user_id TEXT PRIMARY KEY,
                id_number TEXT NOT NULL,
                signature_data TEXT NOT NULL,
                terms_version TEXT NOT NULL,
                phone TEXT,
                address TEXT,
                accepted_at TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Payment_Methods (
                method_id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                name TEXT NOT NULL,
                details TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                sort_order INTEGER NOT NULL DEFAULT 0
            )
            ''')

            # 모바일 결제 검증 기록 및 은행 거래 대조 원장
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Payment_Verifications (
                verification_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                payer_phone TEXT NOT NULL,
                bank_code TEXT NOT NULL,
                reference TEXT NOT NULL,
                payment_date TEXT NOT NULL,
                requested_amount TEXT NOT NULL,
                verified_amount TEXT,
                response_code INTEGER NOT NULL,
                response_message TEXT,
                verified INTEGER NOT NULL DEFAULT 0,
                context TEXT NOT NULL DEFAULT 'GENERAL',
                transaction_id TEXT,
                created_at TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Bank_Movements (
                reference TEXT PRIMARY KEY,
                payer_phone TEXT NOT NULL,
                bank_code TEXT NOT NULL,
                payment_date TEXT NOT NULL,
                amount TEXT NOT NULL
            )
            ''')

            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Gift_Cards (
                gift_card_id TEXT PRIMARY KEY,
                code TEXT NOT NULL UNIQUE,
                amount TEXT NOT NULL,
                balance TEXT NOT NULL,
                purchaser_id TEXT NOT NULL,
                recipient_email TEXT NOT NULL,
                message TEXT,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            ''')

            conn.commit()

        logger.debug("database_initialized", db_path=self.db_path)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        # 컨텍스트 매니저를 사용하여 데이터베이스 연결 자동 관리
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()
