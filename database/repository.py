"""
Database repository classes for the catalog, carts and orders
"""
import sqlite3
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Dict, Any

import structlog

from models.money import to_decimal
from models.product import Product, ProductType, Category
from models.cart import CartLineItem
from models.discount import ActiveDiscount, DiscountStatus
from models.order import Order
from models.store import ShippingPolicy, StoreSettings
from models.recharge import RechargeTransaction
from .connection import DatabaseConnection
from .wallet_repository import debit_balance, insert_transaction

logger = structlog.get_logger()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ProductRepository:
    # 제품 데이터 접근 계층 (데이터베이스 CRUD 작업)

    _COLUMNS = """product_id, product_name, product_type, price, description, category_id,
                  stock_quantity, weight_kg, is_consolidable, shipping_cost, is_active"""

    def __init__(self, db_connection: DatabaseConnection):
        # DatabaseConnection 인스턴스 주입
        self.db = db_connection

    @staticmethod
    def _row_to_product(row) -> Product:
        return Product(
            product_id=row[0],
            product_name=row[1],
            product_type=ProductType(row[2]),
            price=Decimal(row[3]),
            description=row[4],
            category_id=row[5],
            stock_quantity=row[6],
            weight_kg=Decimal(row[7]),
            is_consolidable=bool(row[8]),
            shipping_cost=Decimal(row[9]),
            is_active=bool(row[10])
        )

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        # 제품 ID로 특정 제품 상세 정보 조회
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {self._COLUMNS} FROM Products WHERE product_id = ?",
                           (product_id,))
            row = cursor.fetchone()
            return self._row_to_product(row) if row else None

    def list_products(self, category_id: Optional[str] = None, active_only: bool = True) -> List[Product]:
        # 카테고리별 제품 목록 조회 (이름순)
        query = f"SELECT {self._COLUMNS} FROM Products WHERE 1 = 1"
        params: List[Any] = []
        if category_id:
            query += " AND category_id = ?"
            params.append(category_id)
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY product_name"

        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_product(row) for row in cursor.fetchall()]

    def save_product(self, product: Product) -> bool:
        # 제품 등록 또는 수정 (관리자 편집기)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                INSERT OR REPLACE INTO Products ({self._COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    product.product_id, product.product_name, product.product_type.value,
                    str(product.price), product.description, product.category_id,
                    product.stock_quantity, str(product.weight_kg), int(product.is_consolidable),
                    str(product.shipping_cost), int(product.is_active)
                ))
                conn.commit()
                return True
            except sqlite3.Error as e:
                logger.error("product_save_failed", product_id=product.product_id, error=str(e))
                return False

    def get_categories(self) -> List[Category]:
        # 카테고리 목록 조회 (이름순)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT category_id, name, slug FROM Categories ORDER BY name")
            return [Category(category_id=row[0], name=row[1], slug=row[2] or "")
                    for row in cursor.fetchall()]

    def save_category(self, category: Category) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("INSERT OR REPLACE INTO Categories (category_id, name, slug) VALUES (?, ?, ?)",
                           (category.category_id, category.name, category.slug))
            conn.commit()
            return True


class CartRepository:
    # 장바구니 데이터 접근 계층 (세션별 장바구니 관리)

    def __init__(self, db_connection: DatabaseConnection):
        # DatabaseConnection 인스턴스 주입
        self.db = db_connection

    def get_item(self, session_id: str, line_id: str) -> Optional[CartLineItem]:
        # 세션 장바구니에서 특정 라인 조회
        for item in self.get_cart_items(session_id):
            if item.id == line_id:
                return item
        return None

    def upsert_item(self, session_id: str, item: CartLineItem) -> bool:
        # 장바구니에 라인 추가 또는 수량 갱신
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            try:
                cursor.execute("""
                INSERT INTO Cart (
                    session_id, line_id, product_id, name, unit_price, quantity,
                    product_type, weight_kg, is_consolidable, fixed_shipping_cost, stock
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(session_id, line_id) DO UPDATE SET
                    quantity = excluded.quantity,
                    unit_price = excluded.unit_price,
                    stock = excluded.stock
                """, (
                    session_id, item.id, item.product_id, item.name, str(item.unit_price),
                    item.quantity, item.product_type.value, str(item.weight_kg),
                    int(item.is_consolidable), str(item.fixed_shipping_cost), item.stock
                ))

                conn.commit()
                return True
            except sqlite3.Error as e:
                logger.error("cart_upsert_failed", session_id=session_id, line_id=item.id, error=str(e))
                return False

    def get_cart_items(self, session_id: str) -> List[CartLineItem]:
        # 세션의 장바구니 아이템들 조회 (추가순 정렬)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
            SELECT line_id, product_id, name, unit_price, quantity, product_type,
                   weight_kg, is_consolidable, fixed_shipping_cost, stock
            FROM Cart WHERE session_id = ?
            ORDER BY created_at, rowid
            """, (session_id,))

            return [
                CartLineItem(
                    id=row[0],
                    product_id=row[1],
                    name=row[2],
                    unit_price=Decimal(row[3]),
                    quantity=row[4],
                    product_type=ProductType(row[5]),
                    weight_kg=Decimal(row[6]),
                    is_consolidable=bool(row[7]),
                    fixed_shipping_cost=Decimal(row[8]),
                    stock=row[9]
                )
                for row in cursor.fetchall()
            ]

    def remove_item(self, session_id: str, line_id: str) -> int:
        # 특정 라인 삭제, 삭제된 행 수 반환
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Cart WHERE session_id = ? AND line_id = ?",
                           (session_id, line_id))
            conn.commit()
            return cursor.rowcount

    def clear_cart(self, session_id: str) -> int:
        # 장바구니 전체 비우기, 삭제된 행 수 반환
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Cart WHERE session_id = ?", (session_id,))
            conn.commit()
            return cursor.rowcount


class OrderRepository:
    # 주문 데이터 접근 계층 (주문 생성 및 조회)

    def __init__(self, db_connection: DatabaseConnection):
        # DatabaseConnection 인스턴스 주입
        self.db = db_connection

    def last_order_number(self, prefix: str) -> Optional[str]:
        # 접두사(연도)별 가장 큰 주문번호 조회 (다음 번호 생성용)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT order_number FROM Orders WHERE order_number LIKE ?
            ORDER BY order_number DESC LIMIT 1
            """, (prefix + "%",))
            row = cursor.fetchone()
            return row[0] if row else None

    def create_order(self, order: Order, wallet_payment: Optional[RechargeTransaction] = None) -> bool:
        # 주문, 주문 아이템, 재고 차감(및 지갑 결제)을 한 트랜잭션으로 저장
        # 재고나 잔액이 부족해지면 전체를 롤백하고 False 반환
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            try:
                totals = order.totals
                cursor.execute("""
                INSERT INTO Orders (
                    order_id, order_number, user_id, subtotal, discount, shipping, total,
                    payment_method, delivery_method, status, applied_discount_ids, paid_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    order.order_id, order.order_number, order.user_id,
                    str(totals.subtotal), str(totals.discount_total), str(totals.shipping_fee),
                    str(totals.grand_total), order.payment_method.value, order.delivery_method.value,
                    order.status.value, json.dumps(list(totals.applied_discount_ids)),
                    order.paid_at, order.created_at
                ))

                for item in order.items:
                    cursor.execute("""
                    INSERT INTO Order_Items (
                        order_item_id, order_id, product_id, product_name, quantity, unit_price, line_total
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """, (
                        item.order_item_id, item.order_id, item.product_id, item.product_name,
                        item.quantity, str(item.unit_price), str(item.line_total)
                    ))

                    cursor.execute("""
                    UPDATE Products SET stock_quantity = stock_quantity - ?
                    WHERE product_id = ? AND stock_quantity >= ?
                    """, (item.quantity, item.product_id, item.quantity))
                    if cursor.rowcount == 0:
                        conn.rollback()
                        logger.warning("order_stock_conflict", product_id=item.product_id)
                        return False

                if wallet_payment is not None:
                    if not debit_balance(cursor, order.user_id, wallet_payment.amount):
                        conn.rollback()
                        logger.warning("order_balance_conflict", user_id=order.user_id)
                        return False
                    insert_transaction(cursor, wallet_payment)

                conn.commit()
                return True

            except sqlite3.Error as e:
                conn.rollback()
                logger.error("order_create_failed", order_number=order.order_number, error=str(e))
                return False

    def get_order_details(self, order_number: str) -> Optional[Dict[str, Any]]:
        # 주문 상세 정보 조회 (주문정보 + 주문아이템들)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
            SELECT order_id, order_number, user_id, subtotal, discount, shipping, total,
                   payment_method, delivery_method, status, applied_discount_ids, paid_at, created_at
            FROM Orders WHERE order_number = ?
            """, (order_number,))

            order_row = cursor.fetchone()
            if not order_row:
                return None

            cursor.execute("""
            SELECT order_item_id, product_id, product_name, quantity, unit_price, line_total
            FROM Order_Items WHERE order_id = ?
            ORDER BY order_item_id
            """, (order_row[0],))

            order_items = [
                {
                    "orderItemId": row[0],
                    "productId": row[1],
                    "productName": row[2],
                    "quantity": row[3],
                    "pricePerUnit": row[4],
                    "subtotal": row[5]
                }
                for row in cursor.fetchall()
            ]

            return {
                "id": order_row[0],
                "orderNumber": order_row[1],
                "userId": order_row[2],
                "subtotal": order_row[3],
                "discount": order_row[4],
                "shipping": order_row[5],
                "total": order_row[6],
                "paymentMethod": order_row[7],
                "deliveryMethod": order_row[8],
                "status": order_row[9],
                "appliedDiscountIds": json.loads(order_row[10]) if order_row[10] else [],
                "paidAt": order_row[11],
                "createdAt": order_row[12],
                "items": order_items
            }


class DiscountRepository:
    # 고객별 할인 데이터 접근 계층

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def add_discount(self, discount: ActiveDiscount) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT INTO Discounts (
                discount_id, user_id, product_id, status, requested_percent, approved_percent, expires_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                discount.id, discount.user_id, discount.product_id, discount.status.value,
                str(discount.requested_discount_percent),
                str(discount.approved_discount_percent) if discount.approved_discount_percent is not None else None,
                discount.expires_at.isoformat() if discount.expires_at else None
            ))
            conn.commit()
            return True

    def get_user_discounts(self, user_id: str) -> List[ActiveDiscount]:
        # 사용자의 할인 목록 조회 (생성순: 먼저 일치하는 할인이 적용됨)
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            SELECT discount_id, product_id, status, requested_percent, approved_percent, expires_at
            FROM Discounts WHERE user_id = ?
            ORDER BY created_at, rowid
            """, (user_id,))

            return [
                ActiveDiscount(
                    id=row[0],
                    product_id=row[1],
                    status=DiscountStatus(row[2]),
                    requested_discount_percent=Decimal(row[3]),
                    approved_discount_percent=Decimal(row[4]) if row[4] is not None else None,
                    expires_at=_parse_datetime(row[5]),
                    user_id=user_id
                )
                for row in cursor.fetchall()
            ]


class SettingsRepository:
    # 매장 설정 데이터 접근 계층 (JSON 단일 행)

    SETTINGS_ID = "default"

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection

    def get_settings(self) -> StoreSettings:
        # 저장된 설정이 없으면 기본값 반환
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT data FROM Store_Settings WHERE settings_id = ?", (self.SETTINGS_ID,))
            row = cursor.fetchone()

        if not row:
            return StoreSettings()

        data = json.loads(row[0])
        return StoreSettings(
            shipping=ShippingPolicy(
                delivery_enabled=data.get("delivery_enabled", True),
                fee_per_kg=to_decimal(data.get("fee_per_kg")),
                minimum_consolidated_fee=to_decimal(data.get("minimum_consolidated_fee")),
                packaging_fee=to_decimal(data.get("packaging_fee")),
                free_shipping_threshold=to_decimal(data.get("free_shipping_threshold"), None),
                delivery_fee=to_decimal(data.get("delivery_fee"), None)
            ),
            pickup_enabled=data.get("pickup_enabled", True),
            min_order_amount=to_decimal(data.get("min_order_amount"), None),
            max_order_amount=to_decimal(data.get("max_order_amount"), None),
            primary_currency=data.get("primary_currency", "USD"),
            exchange_rate_ves=to_decimal(data.get("exchange_rate_ves")),
            exchange_rate_eur=to_decimal(data.get("exchange_rate_eur"))
        )

    def save_settings(self, settings: StoreSettings) -> bool:
        # 설정 전체를 JSON으로 직렬화하여 저장
        shipping = settings.shipping

        def opt(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        data = {
            "delivery_enabled": shipping.delivery_enabled,
            "fee_per_kg": str(shipping.fee_per_kg),
            "minimum_consolidated_fee": str(shipping.minimum_consolidated_fee),
            "packaging_fee": str(shipping.packaging_fee),
            "free_shipping_threshold": opt(shipping.free_shipping_threshold),
            "delivery_fee": opt(shipping.delivery_fee),
            "pickup_enabled": settings.pickup_enabled,
            "min_order_amount": opt(settings.min_order_amount),
            "max_order_amount": opt(settings.max_order_amount),
            "primary_currency": settings.primary_currency,
            "exchange_rate_ves": str(settings.exchange_rate_ves),
            "exchange_rate_eur": str(settings.exchange_rate_eur)
        }

        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
            INSERT OR REPLACE INTO Store_Settings (settings_id, data, updated_at) VALUES (?, ?, ?)
            """, (self.SETTINGS_ID, json.dumps(data), _now_iso()))
            conn.commit()
            return True
