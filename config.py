"""
Application configuration and logging setup
"""
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog
from dotenv import load_dotenv


def _env_decimal(name: str, default: Optional[str]) -> Optional[Decimal]:
    value = os.getenv(name, default)
    if value is None or value == "":
        return None
    return Decimal(value)


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """Runtime settings read from the environment"""
    db_path: str = "storefront.db"
    secret_key: str = "dev-secret-key"
    port: int = 5000
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = True
    default_delivery_fee: Decimal = Decimal("10")
    recharge_min_amount: Decimal = Decimal("1")
    recharge_max_amount: Decimal = Decimal("1000")
    recharge_amount_step: Optional[Decimal] = None
    verification_timeout_seconds: float = 30.0
    terms_version: str = "1.0"
    gift_card_min_amount: Decimal = Decimal("5")
    gift_card_max_amount: Decimal = Decimal("500")
    gift_card_amount_step: Decimal = Decimal("5")


def load_settings() -> Settings:
    # .env 파일이 있으면 먼저 읽고, 환경 변수로 설정값 구성
    load_dotenv()

    return Settings(
        db_path=os.getenv("STOREFRONT_DB_PATH", "storefront.db"),
        secret_key=os.getenv("SECRET_KEY", "dev-secret-key"),
        port=int(os.getenv("PORT", "5000")),
        debug=_env_bool("DEBUG"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_env_bool("LOG_JSON", "True"),
        default_delivery_fee=_env_decimal("DEFAULT_DELIVERY_FEE", "10"),
        recharge_min_amount=_env_decimal("RECHARGE_MIN_AMOUNT", "1"),
        recharge_max_amount=_env_decimal("RECHARGE_MAX_AMOUNT", "1000"),
        recharge_amount_step=_env_decimal("RECHARGE_AMOUNT_STEP", None),
        verification_timeout_seconds=float(os.getenv("VERIFICATION_TIMEOUT_SECONDS", "30")),
        terms_version=os.getenv("TERMS_VERSION", "1.0"),
        gift_card_min_amount=_env_decimal("GIFT_CARD_MIN_AMOUNT", "5"),
        gift_card_max_amount=_env_decimal("GIFT_CARD_MAX_AMOUNT", "500"),
        gift_card_amount_step=_env_decimal("GIFT_CARD_AMOUNT_STEP", "5"),
    )


def configure_logging(settings: Settings) -> None:
    # structlog 설정 (JSON 또는 콘솔 출력)
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
