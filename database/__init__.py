"""
Database package for the storefront backend
Contains database connection and repository classes
"""

from .connection import DatabaseConnection
from .repository import (
    ProductRepository, CartRepository, OrderRepository, DiscountRepository, SettingsRepository
)
from .wallet_repository import (
    BalanceRepository, PaymentMethodRepository, VerificationRepository,
    GiftCardRepository, UserRepository
)

__all__ = [
    'DatabaseConnection',
    'ProductRepository', 'CartRepository', 'OrderRepository', 'DiscountRepository',
    'SettingsRepository', 'BalanceRepository', 'PaymentMethodRepository',
    'VerificationRepository', 'GiftCardRepository', 'UserRepository'
]
