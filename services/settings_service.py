"""
Settings service - store configuration and currency display
"""
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Any, Optional

import structlog

from models.money import ZERO, parse_decimal, round_money
from models.store import StoreSettings
from database.repository import SettingsRepository
from .errors import ValidationError

logger = structlog.get_logger()

SUPPORTED_CURRENCIES = ("USD", "VES", "EUR")
CURRENCY_SYMBOLS = {"USD": "$", "VES": "Bs.", "EUR": "€"}

# API key -> (ShippingPolicy field or None for StoreSettings, attribute, nullable)
_DECIMAL_FIELDS = {
    "deliveryFeeUSD": ("shipping", "delivery_fee", True),
    "freeDeliveryThresholdUSD": ("shipping", "free_shipping_threshold", True),
    "feePerKg": ("shipping", "fee_per_kg", False),
    "minimumConsolidatedFee": ("shipping", "minimum_consolidated_fee", False),
    "packagingFee": ("shipping", "packaging_fee", False),
    "minOrderAmountUSD": (None, "min_order_amount", True),
    "maxOrderAmountUSD": (None, "max_order_amount", True),
    "exchangeRateVES": (None, "exchange_rate_ves", False),
    "exchangeRateEUR": (None, "exchange_rate_eur", False),
}


def convert_price(amount_usd: Decimal, currency: str, settings: StoreSettings) -> Decimal:
    # USD 금액을 표시 통화로 환산
    if currency == "VES":
        return amount_usd * settings.exchange_rate_ves
    if currency == "EUR":
        return amount_usd * settings.exchange_rate_eur
    return amount_usd


def format_price(amount_usd: Decimal, currency: str, settings: StoreSettings) -> str:
    # 통화 기호와 천 단위 구분자를 붙인 표시 문자열
    converted = round_money(convert_price(amount_usd, currency, settings))
    return f"{CURRENCY_SYMBOLS.get(currency, '$')} {converted:,.2f}"


class SettingsService:
    # 매장 설정 조회 및 수정 서비스

    def __init__(self, settings_repository: SettingsRepository):
        self.settings_repo = settings_repository

    def get_settings(self) -> StoreSettings:
        return self.settings_repo.get_settings()

    def get_settings_details(self) -> Dict[str, Any]:
        return {"success": True, "settings": self.get_settings().to_dict()}

    def update_settings(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        # 전달된 키만 검증 후 반영 (빈 값은 선택 항목일 때 해제)
        settings = self.get_settings()
        shipping = settings.shipping
        store_changes: Dict[str, Any] = {}
        shipping_changes: Dict[str, Any] = {}

        for key, (target, attr, nullable) in _DECIMAL_FIELDS.items():
            if key not in changes:
                continue
            raw = changes[key]
            if raw is None or raw == "":
                if not nullable:
                    raise ValidationError(f"{key} is required")
                value: Optional[Decimal] = None
            else:
                value = parse_decimal(raw)
                if value is None or value < ZERO:
                    raise ValidationError(f"{key} must be a non-negative number")
            if target == "shipping":
                shipping_changes[attr] = value
            else:
                store_changes[attr] = value

        if "deliveryEnabled" in changes:
            shipping_changes["delivery_enabled"] = bool(changes["deliveryEnabled"])
        if "pickupEnabled" in changes:
            store_changes["pickup_enabled"] = bool(changes["pickupEnabled"])
        if "primaryCurrency" in changes:
            currency = changes["primaryCurrency"]
            if currency not in SUPPORTED_CURRENCIES:
                raise ValidationError(f"Unsupported currency: {currency}")
            store_changes["primary_currency"] = currency

        updated = replace(settings, shipping=replace(shipping, **shipping_changes), **store_changes)

        minimum, maximum = updated.min_order_amount, updated.max_order_amount
        if minimum is not None and maximum is not None and minimum > maximum:
            raise ValidationError("minOrderAmountUSD cannot exceed maxOrderAmountUSD")

        self.settings_repo.save_settings(updated)
        logger.info("settings_updated", fields=sorted(changes))

        return {"success": True, "settings": updated.to_dict()}

    def get_exchange_rates(self) -> Dict[str, Any]:
        # 관리자가 설정한 환율 반환
        settings = self.get_settings()
        return {
            "success": True,
            "primaryCurrency": settings.primary_currency,
            "VES": str(settings.exchange_rate_ves),
            "EUR": str(settings.exchange_rate_eur)
        }
