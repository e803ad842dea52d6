"""
Order cost calculator - derives the order totals of a cart

Pure and synchronous: no I/O, no mutation of its inputs. Amounts are kept at
full Decimal precision while accumulating and rounded once, when the
OrderTotals are built. The grand total is derived from the rounded parts so
that total == subtotal - discount + shipping holds exactly.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Sequence

from models.cart import CartLineItem
from models.discount import ActiveDiscount
from models.money import ZERO, HUNDRED, round_money
from models.order import DeliveryMethod, OrderTotals
from models.product import ProductType
from models.store import ShippingPolicy

DEFAULT_DELIVERY_FEE = Decimal("10")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def find_discount(line: CartLineItem, discounts: Iterable[ActiveDiscount],
                  now: datetime) -> Optional[ActiveDiscount]:
    """First approved, unexpired discount for the line's product, if any"""
    for discount in discounts:
        if discount.is_applicable(line.product_id, now):
            return discount
    return None


def shipping_fee_for(subtotal: Decimal, policy: ShippingPolicy,
                     delivery_method: DeliveryMethod,
                     default_fee: Decimal = DEFAULT_DELIVERY_FEE) -> Decimal:
    """Flat per-order delivery fee, waived for pickup and above the free threshold"""
    if delivery_method == DeliveryMethod.PICKUP:
        return ZERO
    threshold = policy.free_shipping_threshold
    if threshold is not None and subtotal >= threshold:
        return ZERO
    if policy.delivery_fee is None:
        return default_fee
    return policy.delivery_fee


def compute_totals(lines: Sequence[CartLineItem], discounts: Sequence[ActiveDiscount],
                   policy: ShippingPolicy, delivery_method: DeliveryMethod,
                   now: Optional[datetime] = None,
                   default_fee: Decimal = DEFAULT_DELIVERY_FEE) -> OrderTotals:
    """Compute the OrderTotals for a cart.

    An empty cart yields all-zero totals; callers must block checkout on it.
    """
    if not lines:
        return OrderTotals()

    now = now or utc_now()
    subtotal = ZERO
    discount_total = ZERO
    applied_ids: List[str] = []

    for line in lines:
        line_total = line.line_total
        subtotal += line_total

        discount = find_discount(line, discounts, now)
        if discount is None:
            continue
        discount_total += line_total * discount.effective_percent() / HUNDRED
        applied_ids.append(discount.id)

    shipping = shipping_fee_for(subtotal, policy, delivery_method, default_fee)

    subtotal = round_money(subtotal)
    discount_total = round_money(discount_total)
    shipping = round_money(shipping)

    return OrderTotals(
        subtotal=subtotal,
        discount_total=discount_total,
        shipping_fee=shipping,
        grand_total=subtotal - discount_total + shipping,
        applied_discount_ids=tuple(applied_ids),
    )


def estimate_weight_based_fee(lines: Sequence[CartLineItem], policy: ShippingPolicy) -> Decimal:
    """Per-kilogram shipping preview shown in the settings screen.

    Consolidable physical lines share one parcel billed by weight (floored at
    the minimum consolidated fee) plus packaging; other physical lines add
    their fixed shipping cost. Digital lines ship for free. Not used at
    checkout.
    """
    consolidated_weight = ZERO
    fixed_costs = ZERO
    has_consolidated = False

    for line in lines:
        if line.product_type == ProductType.DIGITAL:
            continue
        if line.is_consolidable:
            has_consolidated = True
            consolidated_weight += line.weight_kg * line.quantity
        else:
            fixed_costs += line.fixed_shipping_cost * line.quantity

    fee = fixed_costs
    if has_consolidated:
        parcel = max(consolidated_weight * policy.fee_per_kg, policy.minimum_consolidated_fee)
        fee += parcel + policy.packaging_fee
    return round_money(fee)


class OrderCostCalculator:
    """Binds a shipping policy and clock to compute_totals"""

    def __init__(self, policy: ShippingPolicy, clock: Callable[[], datetime] = utc_now,
                 default_fee: Decimal = DEFAULT_DELIVERY_FEE):
        self.policy = policy
        self.clock = clock
        self.default_fee = default_fee

    def compute(self, lines: Sequence[CartLineItem], discounts: Sequence[ActiveDiscount],
                delivery_method: DeliveryMethod) -> OrderTotals:
        return compute_totals(lines, discounts, self.policy, delivery_method,
                              now=self.clock(), default_fee=self.default_fee)

    def weight_based_preview(self, lines: Sequence[CartLineItem]) -> Decimal:
        return estimate_weight_based_fee(lines, self.policy)
