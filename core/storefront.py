"""
Main Storefront class - wires repositories and services together
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, Optional, Callable

import structlog

from config import Settings
from database.connection import DatabaseConnection
from database.repository import (
    ProductRepository, CartRepository, OrderRepository, DiscountRepository, SettingsRepository
)
from database.wallet_repository import (
    BalanceRepository, PaymentMethodRepository, VerificationRepository,
    GiftCardRepository, UserRepository
)
from models.order import DeliveryMethod, PaymentMethod
from models.product import Category, Product, ProductType
from models.recharge import CompanyPaymentMethod
from services.balance_service import BalanceService
from services.cart_service import CartService
from services.cost_calculator import utc_now
from services.gift_card_service import GiftCardService
from services.order_service import OrderService
from services.payment_verification import LedgerPaymentVerifier, PaymentVerifier
from services.product_service import ProductService
from services.recharge_service import RechargeService
from services.recharge_workflow import RechargeWorkflow
from services.settings_service import SettingsService

logger = structlog.get_logger()


class Storefront:
    # 스토어 백엔드 메인 클래스 - 모든 서비스를 조율하는 중앙 관리자

    def __init__(self, settings: Optional[Settings] = None, db_path: Optional[str] = None,
                 verifier: Optional[PaymentVerifier] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.settings = settings or Settings()

        # 데이터베이스 연결 초기화
        self.db_connection = DatabaseConnection(db_path or self.settings.db_path)

        # 리포지토리 레이어 초기화 (데이터 접근 계층)
        self.product_repo = ProductRepository(self.db_connection)
        self.cart_repo = CartRepository(self.db_connection)
        self.order_repo = OrderRepository(self.db_connection)
        self.discount_repo = DiscountRepository(self.db_connection)
        self.settings_repo = SettingsRepository(self.db_connection)
        self.balance_repo = BalanceRepository(self.db_connection)
        self.payment_method_repo = PaymentMethodRepository(self.db_connection)
        self.verification_repo = VerificationRepository(self.db_connection)
        self.gift_card_repo = GiftCardRepository(self.db_connection)
        self.user_repo = UserRepository(self.db_connection)

        # 서비스 레이어 초기화 (비즈니스 로직 계층)
        self.product_service = ProductService(self.product_repo)
        self.settings_service = SettingsService(self.settings_repo)
        self.cart_service = CartService(
            self.cart_repo, self.product_service, self.settings_service, self.discount_repo,
            default_delivery_fee=self.settings.default_delivery_fee, clock=clock
        )
        self.balance_service = BalanceService(self.balance_repo, self.settings.terms_version)
        self.order_service = OrderService(
            self.order_repo, self.cart_service, self.product_service, self.settings_service,
            self.balance_service, clock=clock
        )
        self.verifier = verifier or LedgerPaymentVerifier(self.verification_repo)
        self.recharge_service = RechargeService(
            self.balance_repo, self.payment_method_repo, self.verification_repo,
            self.balance_service, self.verifier,
            min_amount=self.settings.recharge_min_amount,
            max_amount=self.settings.recharge_max_amount,
            verification_timeout=self.settings.verification_timeout_seconds
        )
        self.gift_card_service = GiftCardService(
            self.gift_card_repo, self.user_repo, self.balance_service,
            min_amount=self.settings.gift_card_min_amount,
            max_amount=self.settings.gift_card_max_amount,
            amount_step=self.settings.gift_card_amount_step
        )

    def new_recharge_workflow(self, user_id: str) -> RechargeWorkflow:
        # 사용자별 충전 워크플로 생성 (인스턴스마다 약관 확인)
        return RechargeWorkflow(
            user_id, self.balance_service, self.recharge_service,
            min_amount=self.settings.recharge_min_amount,
            max_amount=self.settings.recharge_max_amount,
            amount_step=self.settings.recharge_amount_step
        )

    # === 장바구니/주문 관련 메서드들 ===
    def add_to_cart(self, session_id: str, product_id: str, quantity: int = 1) -> Dict[str, Any]:
        return self.cart_service.add_item(session_id, product_id, quantity)

    def get_cart_details(self, session_id: str, user_id: Optional[str] = None,
                         delivery_method: DeliveryMethod = DeliveryMethod.PICKUP) -> Dict[str, Any]:
        return self.cart_service.get_cart_details(session_id, user_id, delivery_method)

    def place_order(self, user_id: str, session_id: str, delivery_method: str,
                    payment_method: str) -> Dict[str, Any]:
        return self.order_service.create_order(user_id, session_id, delivery_method, payment_method)

    def seed_demo_data(self) -> None:
        # 콘솔/개발 서버용 기본 카탈로그와 결제 수단 등록 (이미 있으면 건너뜀)
        if self.product_repo.get_categories():
            return

        self.product_repo.save_category(Category("electronics", "Electronics", "electronics"))
        self.product_repo.save_category(Category("gift-cards", "Gift Cards", "gift-cards"))
        for product in (
            Product("headphones", "Wireless Headphones", ProductType.PHYSICAL, Decimal("50"),
                    "Bluetooth over-ear headphones", "electronics", stock_quantity=20,
                    weight_kg=Decimal("0.4")),
            Product("speaker", "Portable Speaker", ProductType.PHYSICAL, Decimal("30"),
                    "Water resistant speaker", "electronics", stock_quantity=15,
                    weight_kg=Decimal("0.6")),
            Product("tv", "55in Smart TV", ProductType.PHYSICAL, Decimal("420"),
                    "4K television", "electronics", stock_quantity=3, weight_kg=Decimal("14"),
                    is_consolidable=False, shipping_cost=Decimal("25")),
            Product("game-card", "Game Store Card", ProductType.DIGITAL, Decimal("25"),
                    "Digital code delivered by email", "gift-cards", stock_quantity=100),
        ):
            self.product_repo.save_product(product)

        for order, method in enumerate((
            CompanyPaymentMethod("pm-mobile", PaymentMethod.MOBILE_PAYMENT, "Pago Movil",
                                 bank_name="Banco de Venezuela", phone="04141234567",
                                 holder_id="J123456789", holder_name="Storefront CA"),
            CompanyPaymentMethod("pm-transfer", PaymentMethod.BANK_TRANSFER, "Bank transfer",
                                 bank_name="Banesco", holder_name="Storefront CA"),
            CompanyPaymentMethod("pm-zelle", PaymentMethod.ZELLE, "Zelle",
                                 email="payments@storefront.example"),
        )):
            self.payment_method_repo.save_method(method, sort_order=order)

        logger.info("demo_data_seeded", db_path=self.db_connection.db_path)
