"""Service errors and error message constants."""
from typing import Any, Dict, Optional


class errmsg:
    """Error message constants for the storefront services."""

    UNAUTHENTICATED = "Authentication required"
    CART_EMPTY = "Cart is empty"
    ITEM_NOT_IN_CART = "Item not in cart"
    QUANTITY_POSITIVE = "Quantity must be positive"
    PRODUCT_NOT_FOUND = "Product not found"
    PRODUCT_INACTIVE = "Product is not available"
    INSUFFICIENT_STOCK = "Insufficient stock"
    DELIVERY_DISABLED = "Home delivery is not available"
    PICKUP_DISABLED = "Store pickup is not available"
    ORDER_BELOW_MINIMUM = "Order total is below the minimum amount"
    ORDER_ABOVE_MAXIMUM = "Order total is above the maximum amount"
    INVALID_AMOUNT = "Invalid amount"
    AMOUNT_OUT_OF_RANGE = "Amount is out of the allowed range"
    PAYMENT_METHOD_REQUIRED = "Payment method is required"
    PAYMENT_METHOD_UNAVAILABLE = "Payment method is not available"
    REFERENCE_REQUIRED = "Reference required"
    INVALID_REFERENCE = "Reference must have between 4 and 8 digits"
    INVALID_PHONE = "Invalid phone number, expected 04XXXXXXXXX"
    INVALID_ID_NUMBER = "Invalid national id number"
    MISSING_VERIFICATION_FIELDS = "Phone, bank, reference, date and amount are required"
    DUPLICATE_REFERENCE = "This payment reference was already used"
    INSUFFICIENT_BALANCE = "Insufficient balance"
    NO_BALANCE = "No balance available"
    ORDER_CONFLICT = "Stock or balance changed while placing the order, please review your cart"
    DELIVERY_METHOD_REQUIRED = "Delivery method is required"
    TRANSACTION_NOT_FOUND = "Transaction not found"
    TRANSACTION_NOT_OWNED = "Transaction belongs to another user"
    TRANSACTION_NOT_PENDING = "Only pending transactions can be changed"
    TERMS_NOT_ACCEPTED = "Balance terms and conditions must be accepted first"
    TERMS_FIELDS_REQUIRED = "Id number and signature are required to accept the terms"
    RECIPIENT_NOT_REGISTERED = "Recipient is not registered"
    RECIPIENT_EMAIL_REQUIRED = "Recipient email is required"
    VERIFIER_UNAVAILABLE = "Payment verification service is unavailable, try again later"
    REQUEST_IN_FLIGHT = "A request is already in progress"
    INVALID_TRANSITION = "Action not allowed in the current step"


class StorefrontError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None,
                 action: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.action = action
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": False, "error": self.message}
        if self.code:
            result["code"] = self.code
        if self.action:
            result["action"] = self.action
        if self.details is not None:
            result["details"] = self.details
        return result


class ValidationError(StorefrontError):
    """Missing or malformed input; never reaches a collaborator."""


class BusinessRuleError(StorefrontError):
    """Request was well formed but a business rule rejected it."""


class NotFoundError(StorefrontError):
    status_code = 404


class AuthorizationError(StorefrontError):
    status_code = 403


class AuthenticationError(StorefrontError):
    status_code = 401


class TermsNotAcceptedError(StorefrontError):
    status_code = 403


class TransportError(StorefrontError):
    """A collaborator could not be reached; the operation can be retried."""

    status_code = 502


class WorkflowError(StorefrontError):
    """Action not permitted in the current workflow state."""

    status_code = 409
