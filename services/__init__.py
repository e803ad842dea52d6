"""
Services package for the storefront backend
Contains business logic services
"""

from .errors import (
    errmsg, StorefrontError, ValidationError, BusinessRuleError, NotFoundError,
    AuthorizationError, AuthenticationError, TermsNotAcceptedError, TransportError, WorkflowError
)
from .cost_calculator import OrderCostCalculator, compute_totals, estimate_weight_based_fee
from .product_service import ProductService
from .settings_service import SettingsService
from .cart_service import CartService
from .balance_service import BalanceService
from .order_service import OrderService
from .payment_verification import PaymentVerifier, LedgerPaymentVerifier
from .recharge_service import RechargeService
from .recharge_workflow import RechargeWorkflow, WorkflowState
from .gift_card_service import GiftCardService

__all__ = [
    'errmsg', 'StorefrontError', 'ValidationError', 'BusinessRuleError', 'NotFoundError',
    'AuthorizationError', 'AuthenticationError', 'TermsNotAcceptedError', 'TransportError',
    'WorkflowError',
    'OrderCostCalculator', 'compute_totals', 'estimate_weight_based_fee',
    'ProductService', 'SettingsService', 'CartService', 'BalanceService', 'OrderService',
    'PaymentVerifier', 'LedgerPaymentVerifier', 'RechargeService',
    'RechargeWorkflow', 'WorkflowState', 'GiftCardService'
]
