"""
Serializers for orders and quotes.
"""

from rest_framework import serializers

from .models import Order
from .pricing import DEFAULT_PERCENTAGE_RATE, PaymentType

PAYMENT_TYPES = [payment_type.value for payment_type in PaymentType]


class PricingInputSerializer(serializers.Serializer):
    """Pricing inputs shared by quotes and orders."""

    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    quantity = serializers.IntegerField(min_value=1, default=1)
    payment_type = serializers.ChoiceField(choices=PAYMENT_TYPES, default=PaymentType.FULL.value)
    percentage_rate = serializers.IntegerField(min_value=1, max_value=100, default=DEFAULT_PERCENTAGE_RATE)


class QuoteSerializer(PricingInputSerializer):
    gift_card_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, default=0)


class OrderAmountsSerializer(serializers.Serializer):
    """Serializer for computed amounts (output only)."""

    total_price = serializers.DecimalField(max_digits=14, decimal_places=2)
    amount_to_pay = serializers.DecimalField(max_digits=14, decimal_places=2)
    percentage_paid = serializers.DecimalField(max_digits=14, decimal_places=2)
    remaining_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    final_amount_to_pay = serializers.DecimalField(max_digits=14, decimal_places=2)
    platform_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    seller_amount = serializers.DecimalField(max_digits=14, decimal_places=2)


class OrderCreateSerializer(PricingInputSerializer):
    """Serializer for creating an order (input)."""

    item_name = serializers.CharField(max_length=200)
    customer_email = serializers.EmailField()
    customer_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    customer_phone = serializers.CharField(max_length=40, required=False, allow_blank=True, default='')
    referrer_email = serializers.EmailField(required=False, allow_blank=True, default='')
    gift_card_code = serializers.CharField(max_length=40, required=False, allow_blank=True)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)


class OrderReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying Order (output)."""

    class Meta:
        model = Order
        fields = [
            'id',
            'item_name',
            'customer_email',
            'customer_name',
            'currency',
            'unit_price',
            'quantity',
            'payment_type',
            'percentage_rate',
            'gift_card_amount',
            'total_price',
            'amount_to_pay',
            'percentage_paid',
            'remaining_amount',
            'final_amount_to_pay',
            'platform_commission',
            'seller_amount',
            'referral_commission',
            'payment_status',
            'transaction_id',
            'checkout_url',
            'created_at',
        ]
