"""
Models package for the storefront backend
Contains data models and type definitions
"""

from .money import to_decimal, round_money, parse_decimal, money_str
from .product import Product, ProductType, Category
from .cart import CartLineItem
from .discount import ActiveDiscount, DiscountStatus
from .store import ShippingPolicy, StoreSettings
from .order import (
    Order, OrderItem, OrderStatus, OrderTotals, DeliveryMethod, PaymentMethod
)
from .recharge import (
    RechargeTransaction, TransactionStatus, TransactionType, CompanyPaymentMethod,
    VerificationRequest, VerificationResult, VerificationOutcome,
    PENDING_VERIFICATION, AUTO_VERIFIABLE_METHODS
)
from .balance import UserBalance, TermsAcceptance, GiftCard, GiftCardStatus

__all__ = [
    'to_decimal', 'round_money', 'parse_decimal', 'money_str',
    'Product', 'ProductType', 'Category',
    'CartLineItem',
    'ActiveDiscount', 'DiscountStatus',
    'ShippingPolicy', 'StoreSettings',
    'Order', 'OrderItem', 'OrderStatus', 'OrderTotals', 'DeliveryMethod', 'PaymentMethod',
    'RechargeTransaction', 'TransactionStatus', 'TransactionType', 'CompanyPaymentMethod',
    'VerificationRequest', 'VerificationResult', 'VerificationOutcome',
    'PENDING_VERIFICATION', 'AUTO_VERIFIABLE_METHODS',
    'UserBalance', 'TermsAcceptance', 'GiftCard', 'GiftCardStatus'
]
