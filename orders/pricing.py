"""
Pricing - which unit price a user pays, and order totals.

One strategy per role:
    - DealerPricing: dealer price, minus the dealer's margin percent if set
    - RetailPricing: customer (retail) price, used for every other role

total_amount is always the retail-basis total; final_amount is what the
user actually pays.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Optional, Tuple

from inventory.models import Product

CENTS = Decimal('0.01')


class PricingStrategy:
    """Resolves the unit price a buyer pays for a product."""
    dealer_price_used = False

    def unit_price_for(self, product: Product) -> Decimal:
        raise NotImplementedError


class RetailPricing(PricingStrategy):

    def unit_price_for(self, product: Product) -> Decimal:
        return product.customer_price


class DealerPricing(PricingStrategy):
    dealer_price_used = True

    def __init__(self, margin_percent: Optional[Decimal] = None):
        self.margin_percent = margin_percent

    def unit_price_for(self, product: Product) -> Decimal:
        price = product.dealer_price
        if self.margin_percent:
            discount = Decimal(self.margin_percent) / Decimal('100')
            price = (price * (Decimal('1') - discount)).quantize(CENTS, rounding=ROUND_HALF_UP)
        return price


def pricing_for(role: str, margin_percent: Optional[Decimal] = None) -> PricingStrategy:
    if role == 'DEALER':
        return DealerPricing(margin_percent)
    return RetailPricing()


def pricing_for_user(user) -> PricingStrategy:
    return pricing_for(user.role, getattr(user, 'margin_percent', None))


def resolve_price(product: Product, role: str, margin_percent: Optional[Decimal] = None) -> Decimal:
    return pricing_for(role, margin_percent).unit_price_for(product)


class Totals(NamedTuple):
    total_amount: Decimal
    final_amount: Decimal
    dealer_price_used: bool


def compute_totals(lines: Iterable[Tuple[Product, int]], strategy: PricingStrategy) -> Totals:
    """
    Compute (total_amount, final_amount) for (product, quantity) lines.

    Pure: reads already-loaded products only.
    """
    total = Decimal('0.00')
    final = Decimal('0.00')
    for product, quantity in lines:
        total += product.customer_price * quantity
        final += strategy.unit_price_for(product) * quantity
    return Totals(total, final, strategy.dealer_price_used)
