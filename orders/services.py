"""
Service layer for orders.

Amounts come from ``pricing.py``. Creating an order is split in two parts:
the order itself is validated and saved atomically, then the gift card debit
and the payment initiation run best-effort. A failure in either is logged and
recorded on the order; it never undoes the order.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import transaction

from .gateways import PaymentGateway, PaymentGatewayError, PaymentRequest, get_payment_gateway
from .models import GiftCard, GiftCardRedemption, Order
from .pricing import OrderAmounts, OrderPricing, compute_amounts, referral_commission
from .types import OrderCreateData

logger = logging.getLogger(__name__)


class GiftCardError(ValueError):
    """Raised when a gift card cannot be used."""


def quote_order(pricing: OrderPricing) -> OrderAmounts:
    """Compute an order's amounts with the platform's commission settings."""
    return compute_amounts(
        pricing,
        settings.PLATFORM_COMMISSION_RATE,
        settings.PLATFORM_COMMISSION_BASE
    )


def find_gift_card(code: str, currency: str) -> GiftCard:
    """
    Get an active gift card usable in ``currency``.

    Raises:
        GiftCardError: If the card does not exist, is inactive or uses another currency
    """
    gift_card = GiftCard.objects.filter(code=code).first()
    if gift_card is None or not gift_card.is_active:
        raise GiftCardError("This gift card is not valid.")
    if gift_card.currency != currency:
        raise GiftCardError(f"This gift card can only be used for payments in {gift_card.currency}.")
    return gift_card


@transaction.atomic
def redeem_gift_card(gift_card: GiftCard, order: Order, amount: Decimal) -> GiftCardRedemption:
    """
    Debit a gift card for an order.

    The card row is locked for the debit, so two redemptions cannot both
    spend the same balance.

    Args:
        gift_card: GiftCard to debit
        order: Order the amount is applied to
        amount: Amount to debit

    Returns:
        The GiftCardRedemption record

    Raises:
        GiftCardError: If the card is inactive or its balance is too low
    """
    if amount <= 0:
        raise GiftCardError("The redeemed amount must be positive.")

    locked = GiftCard.objects.select_for_update().get(pk=gift_card.pk)
    if not locked.is_active:
        raise GiftCardError("This gift card is no longer active.")
    if locked.balance < amount:
        raise GiftCardError("The gift card balance is too low.")

    locked.balance -= amount
    locked.save(update_fields=['balance', 'updated_at'])
    gift_card.balance = locked.balance

    redemption = GiftCardRedemption.objects.create(gift_card=locked, order=order, amount=amount)
    logger.info("Redeemed %s from gift card %s for order %s", amount, locked.code, order.pk)
    return redemption


def create_order(data: OrderCreateData, gateway: Optional[PaymentGateway] = None) -> Order:
    """
    Create an order, debit its gift card and start the payment.

    Args:
        data: OrderCreateData describing the order
        gateway: Payment gateway to use (defaults to the configured one)

    Returns:
        The saved Order. ``payment_status`` is 'initiated' when a checkout
        URL was obtained, 'paid' when nothing is left to pay and 'failed'
        when the gateway could not be reached.

    Raises:
        ValueError: If the pricing inputs are invalid
        GiftCardError: If the gift card cannot be used for this order
    """
    currency = data.currency or settings.DEFAULT_CURRENCY
    gift_card = find_gift_card(data.gift_card_code, currency) if data.gift_card_code else None

    pricing = OrderPricing(
        unit_price=data.unit_price,
        quantity=data.quantity,
        payment_type=data.payment_type,
        percentage_rate=data.percentage_rate,
        gift_card_amount=gift_card.balance if gift_card else Decimal('0'),
    )
    amounts = quote_order(pricing)
    gift_card_applied = amounts.amount_to_pay - amounts.final_amount_to_pay

    order = _save_order(data, currency, pricing, amounts, gift_card, gift_card_applied)

    if gift_card is not None and gift_card_applied > 0:
        try:
            redeem_gift_card(gift_card, order, gift_card_applied)
        except GiftCardError:
            logger.exception("Gift card debit failed for order %s", order.pk)

    if amounts.final_amount_to_pay > 0:
        _start_payment(order, get_payment_gateway(gateway))
    else:
        order.payment_status = Order.PAYMENT_PAID
        order.save(update_fields=['payment_status', 'updated_at'])

    return order


@transaction.atomic
def _save_order(data, currency, pricing, amounts, gift_card, gift_card_applied) -> Order:
    referral = Decimal('0')
    if data.referrer_email:
        referral = referral_commission(amounts.total_price, settings.REFERRAL_COMMISSION_RATE)

    order = Order.objects.create(
        item_name=data.item_name,
        customer_email=data.customer_email,
        customer_name=data.customer_name,
        customer_phone=data.customer_phone,
        referrer_email=data.referrer_email,
        currency=currency,
        unit_price=pricing.unit_price,
        quantity=pricing.quantity,
        payment_type=pricing.payment_type.value,
        percentage_rate=pricing.percentage_rate,
        gift_card=gift_card,
        gift_card_amount=gift_card_applied,
        total_price=amounts.total_price,
        amount_to_pay=amounts.amount_to_pay,
        percentage_paid=amounts.percentage_paid,
        remaining_amount=amounts.remaining_amount,
        final_amount_to_pay=amounts.final_amount_to_pay,
        commission_rate=settings.PLATFORM_COMMISSION_RATE,
        commission_base=settings.PLATFORM_COMMISSION_BASE,
        platform_commission=amounts.platform_commission,
        seller_amount=amounts.seller_amount,
        referral_commission=referral,
    )
    logger.info(
        "Created order %s: total %s %s, to pay now %s",
        order.pk, order.total_price, currency, order.final_amount_to_pay
    )
    return order


def _start_payment(order: Order, gateway: PaymentGateway) -> None:
    """Ask the gateway for a checkout session and record the outcome on the order."""
    request = PaymentRequest(
        amount=order.final_amount_to_pay,
        currency=order.currency,
        description=f"Order #{order.pk} - {order.item_name}",
        customer_email=order.customer_email,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        return_url=settings.PAYMENT_RETURN_URL,
        metadata={'order_id': order.pk, 'payment_type': order.payment_type},
    )

    try:
        session = gateway.initiate_payment(request)
    except PaymentGatewayError as e:
        logger.error("Payment initiation failed for order %s: %s", order.pk, e)
        order.payment_status = Order.PAYMENT_FAILED
        order.save(update_fields=['payment_status', 'updated_at'])
        return

    order.payment_status = Order.PAYMENT_INITIATED
    order.transaction_id = session.transaction_id
    order.checkout_url = session.checkout_url
    order.save(update_fields=['payment_status', 'transaction_id', 'checkout_url', 'updated_at'])
