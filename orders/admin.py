"""
Admin configuration for the orders app.
"""

from django.contrib import admin
from .models import GiftCard, GiftCardRedemption, Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin interface for Order model. Amounts are computed, never edited."""

    list_display = ['id', 'item_name', 'customer_email', 'total_price', 'final_amount_to_pay',
                    'currency', 'payment_type', 'payment_status', 'created_at']
    list_filter = ['payment_status', 'payment_type', 'currency', 'created_at']
    search_fields = ['item_name', 'customer_email', 'transaction_id']
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Customer', {
            'fields': ('customer_email', 'customer_name', 'customer_phone', 'referrer_email')
        }),
        ('Pricing', {
            'fields': ('item_name', 'currency', 'unit_price', 'quantity', 'payment_type',
                       'percentage_rate', 'gift_card', 'gift_card_amount')
        }),
        ('Amounts', {
            'fields': ('total_price', 'amount_to_pay', 'percentage_paid', 'remaining_amount',
                       'final_amount_to_pay')
        }),
        ('Commission', {
            'fields': ('commission_rate', 'commission_base', 'platform_commission',
                       'seller_amount', 'referral_commission')
        }),
        ('Payment', {
            'fields': ('payment_status', 'transaction_id', 'checkout_url')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['unit_price', 'quantity', 'payment_type', 'percentage_rate', 'gift_card',
                       'gift_card_amount', 'total_price', 'amount_to_pay', 'percentage_paid',
                       'remaining_amount', 'final_amount_to_pay', 'commission_rate',
                       'commission_base', 'platform_commission', 'seller_amount',
                       'referral_commission', 'transaction_id', 'checkout_url',
                       'created_at', 'updated_at']


class GiftCardRedemptionInline(admin.TabularInline):
    model = GiftCardRedemption
    extra = 0
    readonly_fields = ['order', 'amount', 'created_at']
    can_delete = False


@admin.register(GiftCard)
class GiftCardAdmin(admin.ModelAdmin):
    list_display = ['code', 'balance', 'currency', 'is_active']
    list_filter = ['is_active', 'currency']
    search_fields = ['code']
    inlines = [GiftCardRedemptionInline]
