"""
Models for orders, gift cards and gift card redemptions.

Order keeps its pricing inputs next to every amount derived from them, so an
order never has to be recomputed to be displayed or settled.
"""

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .pricing import DEFAULT_PERCENTAGE_RATE, CommissionBase, PaymentType

AMOUNT_FIELD = dict(max_digits=14, decimal_places=2)


class Order(models.Model):
    """A customer order with its computed amounts and payment state."""

    PAYMENT_TYPE_CHOICES = [
        (PaymentType.FULL.value, 'Full payment'),
        (PaymentType.PERCENTAGE.value, 'Deposit'),
        (PaymentType.ESCROW_SECURED.value, 'Escrow secured'),
    ]

    COMMISSION_BASE_CHOICES = [
        (CommissionBase.ORDER_TOTAL.value, 'Order total'),
        (CommissionBase.AMOUNT_COLLECTED.value, 'Amount collected'),
    ]

    PAYMENT_PENDING = 'pending'
    PAYMENT_INITIATED = 'initiated'
    PAYMENT_PAID = 'paid'
    PAYMENT_FAILED = 'failed'

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_INITIATED, 'Initiated'),
        (PAYMENT_PAID, 'Paid'),
        (PAYMENT_FAILED, 'Failed'),
    ]

    item_name = models.CharField(max_length=200)
    customer_email = models.EmailField()
    customer_name = models.CharField(max_length=200, blank=True, default='')
    customer_phone = models.CharField(max_length=40, blank=True, default='')
    referrer_email = models.EmailField(blank=True, default='')
    currency = models.CharField(max_length=3)

    unit_price = models.DecimalField(**AMOUNT_FIELD, validators=[MinValueValidator(Decimal('0'))])
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    payment_type = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES, default=PaymentType.FULL.value)
    percentage_rate = models.PositiveSmallIntegerField(
        default=DEFAULT_PERCENTAGE_RATE,
        validators=[MinValueValidator(1), MaxValueValidator(100)]
    )
    gift_card = models.ForeignKey(
        'GiftCard',
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    gift_card_amount = models.DecimalField(**AMOUNT_FIELD, default=Decimal('0'))

    total_price = models.DecimalField(**AMOUNT_FIELD)
    amount_to_pay = models.DecimalField(**AMOUNT_FIELD)
    percentage_paid = models.DecimalField(**AMOUNT_FIELD, default=Decimal('0'))
    remaining_amount = models.DecimalField(**AMOUNT_FIELD, default=Decimal('0'))
    final_amount_to_pay = models.DecimalField(**AMOUNT_FIELD)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=4)
    commission_base = models.CharField(
        max_length=20,
        choices=COMMISSION_BASE_CHOICES,
        default=CommissionBase.ORDER_TOTAL.value
    )
    platform_commission = models.DecimalField(**AMOUNT_FIELD)
    seller_amount = models.DecimalField(**AMOUNT_FIELD)
    referral_commission = models.DecimalField(**AMOUNT_FIELD, default=Decimal('0'))

    payment_status = models.CharField(
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default=PAYMENT_PENDING
    )
    transaction_id = models.CharField(max_length=100, blank=True, default='')
    checkout_url = models.URLField(max_length=500, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['payment_status', 'created_at']),
            models.Index(fields=['customer_email']),
        ]

    def __str__(self):
        return f"Order #{self.pk} - {self.item_name} ({self.total_price} {self.currency})"


class GiftCard(models.Model):
    """Prepaid balance redeemable against orders."""

    code = models.CharField(max_length=40, unique=True)
    balance = models.DecimalField(**AMOUNT_FIELD, validators=[MinValueValidator(Decimal('0'))])
    currency = models.CharField(max_length=3)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['code']

    def __str__(self):
        return f"{self.code} ({self.balance} {self.currency})"


class GiftCardRedemption(models.Model):
    """One debit of a gift card for an order."""

    gift_card = models.ForeignKey(GiftCard, on_delete=models.PROTECT, related_name='redemptions')
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='gift_card_redemptions')
    amount = models.DecimalField(**AMOUNT_FIELD, validators=[MinValueValidator(Decimal('0.01'))])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.amount} from {self.gift_card.code} for order #{self.order_id}"
