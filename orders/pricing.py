"""
Order amounts and commission split.

Framework-agnostic. Amounts are Decimals rounded to whole currency units,
half up; the currencies handled here have no sub-units.
"""

import enum
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

WHOLE_UNIT = Decimal('1')
HUNDRED = Decimal('100')
DEFAULT_PERCENTAGE_RATE = 30


class PaymentType(str, enum.Enum):
    FULL = 'full'
    PERCENTAGE = 'percentage'
    ESCROW_SECURED = 'escrow_secured'


class CommissionBase(str, enum.Enum):
    """What the platform commission is charged on."""

    ORDER_TOTAL = 'order_total'
    AMOUNT_COLLECTED = 'amount_collected'


def round_amount(value) -> Decimal:
    """Round to a whole currency unit, half up."""
    return Decimal(value).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderPricing:
    """Inputs of an order's amounts."""

    unit_price: Decimal
    quantity: int
    payment_type: PaymentType = PaymentType.FULL
    percentage_rate: int = DEFAULT_PERCENTAGE_RATE
    gift_card_amount: Decimal = Decimal('0')

    def __post_init__(self):
        object.__setattr__(self, 'unit_price', Decimal(str(self.unit_price)))
        object.__setattr__(self, 'gift_card_amount', Decimal(str(self.gift_card_amount or 0)))
        object.__setattr__(self, 'payment_type', PaymentType(self.payment_type))

        if self.unit_price < 0:
            raise ValueError("The unit price cannot be negative.")
        if self.quantity is None or self.quantity < 1:
            raise ValueError("The quantity must be at least 1.")
        if self.gift_card_amount < 0:
            raise ValueError("The gift card amount cannot be negative.")
        if self.payment_type == PaymentType.PERCENTAGE and not 1 <= self.percentage_rate <= 100:
            raise ValueError("The deposit percentage must be between 1 and 100.")


@dataclass(frozen=True)
class OrderAmounts:
    total_price: Decimal
    amount_to_pay: Decimal
    percentage_paid: Decimal
    remaining_amount: Decimal
    final_amount_to_pay: Decimal
    platform_commission: Decimal
    seller_amount: Decimal


def compute_amounts(
    pricing: OrderPricing,
    platform_commission_rate,
    commission_base: CommissionBase = CommissionBase.ORDER_TOTAL
) -> OrderAmounts:
    """
    Compute what the customer pays now and how the total is split.

    Args:
        pricing: OrderPricing of the order
        platform_commission_rate: Platform share, between 0 and 1
        commission_base: Whether commission is charged on the order total
                         or on the amount collected now

    Returns:
        OrderAmounts. ``platform_commission + seller_amount`` always equals
        ``total_price``.

    Raises:
        ValueError: If the commission rate is outside [0, 1]
    """
    rate = Decimal(str(platform_commission_rate))
    if not Decimal('0') <= rate <= Decimal('1'):
        raise ValueError("The platform commission rate must be between 0 and 1.")
    commission_base = CommissionBase(commission_base)

    total_price = pricing.unit_price * pricing.quantity

    if pricing.payment_type == PaymentType.PERCENTAGE:
        amount_to_pay = round_amount(total_price * pricing.percentage_rate / HUNDRED)
        remaining_amount = total_price - amount_to_pay
        percentage_paid = amount_to_pay
    else:
        # Escrow collects the full amount; releasing it to the seller happens elsewhere.
        amount_to_pay = total_price
        remaining_amount = Decimal('0')
        percentage_paid = Decimal('0')

    final_amount_to_pay = max(Decimal('0'), amount_to_pay - pricing.gift_card_amount)

    if commission_base == CommissionBase.AMOUNT_COLLECTED:
        commission_source = amount_to_pay
    else:
        commission_source = total_price
    platform_commission = round_amount(commission_source * rate)
    seller_amount = total_price - platform_commission

    return OrderAmounts(
        total_price=total_price,
        amount_to_pay=amount_to_pay,
        percentage_paid=percentage_paid,
        remaining_amount=remaining_amount,
        final_amount_to_pay=final_amount_to_pay,
        platform_commission=platform_commission,
        seller_amount=seller_amount,
    )


def referral_commission(amount, rate) -> Decimal:
    """Referral payout on an amount, rounded like every other amount."""
    rate = Decimal(str(rate))
    if not Decimal('0') <= rate <= Decimal('1'):
        raise ValueError("The referral commission rate must be between 0 and 1.")
    return round_amount(Decimal(str(amount)) * rate)
