"""
Product service - handles catalog retrieval and admin product edits
"""
from typing import Dict, Any, Optional

import structlog

from models.money import ZERO, parse_decimal
from models.product import Product, ProductType
from database.repository import ProductRepository
from .errors import errmsg, NotFoundError, ValidationError

logger = structlog.get_logger()


class ProductService:
    # 제품 관련 비즈니스 로직을 처리하는 서비스 클래스

    def __init__(self, product_repository: ProductRepository):
        # ProductRepository 인스턴스를 주입받아 데이터 접근 계층과 연결
        self.product_repo = product_repository

    def get_categories(self) -> Dict[str, Any]:
        # 카테고리 목록 조회
        categories = self.product_repo.get_categories()
        return {
            "success": True,
            "categories": [category.to_dict() for category in categories]
        }

    def list_products(self, category_id: Optional[str] = None) -> Dict[str, Any]:
        # 판매 중인 제품 목록 조회
        products = self.product_repo.list_products(category_id)
        return {
            "success": True,
            "products": [product.to_dict() for product in products],
            "total_found": len(products)
        }

    def get_product(self, product_id: str) -> Product:
        # 제품 ID로 제품 조회, 없으면 NotFoundError
        product = self.product_repo.get_product_by_id(product_id)
        if product is None:
            raise NotFoundError(errmsg.PRODUCT_NOT_FOUND, code="PRODUCT_NOT_FOUND")
        return product

    def get_product_details(self, product_id: str) -> Dict[str, Any]:
        return {"success": True, "product": self.get_product(product_id).to_dict()}

    def update_product(self, product_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        # 관리자 편집기에서 전달된 필드만 수정 (가격, 재고, 배송 정보 등)
        product = self.get_product(product_id)

        if "name" in changes:
            name = str(changes["name"] or "").strip()
            if not name:
                raise ValidationError("Product name is required")
            product.product_name = name

        if "description" in changes:
            product.description = changes["description"]

        if "productType" in changes:
            try:
                product.product_type = ProductType(changes["productType"])
            except ValueError:
                raise ValidationError(f"Unknown product type: {changes['productType']}")

        for key, attr in (("price", "price"), ("weightKg", "weight_kg"),
                          ("shippingCost", "shipping_cost")):
            if key in changes:
                value = parse_decimal(changes[key])
                if value is None or value < ZERO:
                    raise ValidationError(f"{key} must be a non-negative number")
                setattr(product, attr, value)

        if "stock" in changes:
            stock = changes["stock"]
            if not isinstance(stock, int) or isinstance(stock, bool) or stock < 0:
                raise ValidationError("stock must be a non-negative integer")
            product.stock_quantity = stock

        if "isConsolidable" in changes:
            product.is_consolidable = bool(changes["isConsolidable"])

        if "isActive" in changes:
            product.is_active = bool(changes["isActive"])

        if "categoryId" in changes:
            product.category_id = changes["categoryId"]

        self.product_repo.save_product(product)
        logger.info("product_updated", product_id=product_id, fields=sorted(changes))

        return {"success": True, "product": product.to_dict()}
