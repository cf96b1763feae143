"""
Tests for orders.

Tests cover:
- Amount and commission computation (pricing.py)
- Payment gateway client over a mocked HTTP transport
- Service layer (gift cards, order creation, best-effort side effects)
- API endpoints
"""

import json
from decimal import Decimal
from unittest import mock

import httpx
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from . import services
from .gateways import (
    HttpPaymentGateway,
    PaymentGateway,
    PaymentGatewayError,
    PaymentRequest,
    PaymentSession,
)
from .models import GiftCard, GiftCardRedemption, Order
from .pricing import (
    CommissionBase,
    OrderPricing,
    PaymentType,
    compute_amounts,
    referral_commission,
)
from .types import OrderCreateData


class FakeGateway(PaymentGateway):
    """Gateway that records requests and always succeeds."""

    def __init__(self):
        self.requests = []

    def initiate_payment(self, request):
        self.requests.append(request)
        return PaymentSession(
            checkout_url='https://pay.example.com/checkout/tx-1',
            transaction_id='tx-1'
        )


class FailingGateway(PaymentGateway):

    def initiate_payment(self, request):
        raise PaymentGatewayError("Payment gateway unreachable: timeout")


class ComputeAmountsTests(TestCase):
    """Test order amount computation."""

    def test_full_payment(self):
        """Test full payment of two units."""
        amounts = compute_amounts(
            OrderPricing(unit_price=Decimal('1000'), quantity=2, payment_type=PaymentType.FULL),
            Decimal('0.10')
        )

        self.assertEqual(amounts.total_price, Decimal('2000'))
        self.assertEqual(amounts.amount_to_pay, Decimal('2000'))
        self.assertEqual(amounts.remaining_amount, Decimal('0'))
        self.assertEqual(amounts.percentage_paid, Decimal('0'))
        self.assertEqual(amounts.final_amount_to_pay, Decimal('2000'))
        self.assertEqual(amounts.platform_commission, Decimal('200'))
        self.assertEqual(amounts.seller_amount, Decimal('1800'))

    def test_percentage_deposit(self):
        """Test a 30% deposit."""
        amounts = compute_amounts(
            OrderPricing(unit_price=Decimal('10000'), quantity=1, payment_type='percentage', percentage_rate=30),
            Decimal('0.10')
        )

        self.assertEqual(amounts.amount_to_pay, Decimal('3000'))
        self.assertEqual(amounts.percentage_paid, Decimal('3000'))
        self.assertEqual(amounts.remaining_amount, Decimal('7000'))

    def test_deposit_rounds_half_up(self):
        """Test deposits round to whole units, half up."""
        amounts = compute_amounts(
            OrderPricing(unit_price=Decimal('1001'), quantity=1, payment_type='percentage', percentage_rate=50),
            Decimal('0')
        )

        self.assertEqual(amounts.amount_to_pay, Decimal('501'))
        self.assertEqual(amounts.remaining_amount, Decimal('500'))

    def test_escrow_collects_everything(self):
        """Test escrow-secured orders collect the full total."""
        amounts = compute_amounts(
            OrderPricing(unit_price=Decimal('750'), quantity=4, payment_type='escrow_secured'),
            Decimal('0.10')
        )

        self.assertEqual(amounts.amount_to_pay, Decimal('3000'))
        self.assertEqual(amounts.remaining_amount, Decimal('0'))

    def test_gift_card_reduces_amount(self):
        """Test a gift card smaller than the amount due."""
        amounts = compute_amounts(
            OrderPricing(unit_price=Decimal('2000'), quantity=1, gift_card_amount=Decimal('500')),
            Decimal('0.10')
        )

        self.assertEqual(amounts.final_amount_to_pay, Decimal('1500'))

    def test_gift_card_larger_than_amount_is_clamped(self):
        """Test the final amount never goes below zero."""
        amounts = compute_amounts(
            OrderPricing(
                unit_price=Decimal('10000'),
                quantity=1,
                payment_type='percentage',
                percentage_rate=30,
                gift_card_amount=Decimal('5000')
            ),
            Decimal('0.10')
        )

        self.assertEqual(amounts.amount_to_pay, Decimal('3000'))
        self.assertEqual(amounts.final_amount_to_pay, Decimal('0'))

    def test_commission_split_sums_to_total(self):
        """Test commission and seller share add up exactly."""
        for unit_price in ('0', '1', '999', '1003', '12345.67', '250000'):
            for rate in ('0', '0.025', '0.10', '0.15', '0.333', '1'):
                amounts = compute_amounts(
                    OrderPricing(unit_price=Decimal(unit_price), quantity=3),
                    Decimal(rate)
                )
                self.assertEqual(
                    amounts.platform_commission + amounts.seller_amount,
                    amounts.total_price
                )

    def test_commission_rounds_half_up(self):
        """Test commission rounding."""
        amounts = compute_amounts(OrderPricing(unit_price=Decimal('1003'), quantity=1), Decimal('0.15'))

        self.assertEqual(amounts.platform_commission, Decimal('150'))
        self.assertEqual(amounts.seller_amount, Decimal('853'))

    def test_commission_on_amount_collected(self):
        """Test commission charged on the deposit only."""
        amounts = compute_amounts(
            OrderPricing(unit_price=Decimal('10000'), quantity=1, payment_type='percentage', percentage_rate=30),
            Decimal('0.10'),
            CommissionBase.AMOUNT_COLLECTED
        )

        self.assertEqual(amounts.platform_commission, Decimal('300'))
        self.assertEqual(amounts.seller_amount, Decimal('9700'))

    def test_invalid_inputs(self):
        """Test invalid pricing inputs are rejected."""
        with self.assertRaises(ValueError):
            OrderPricing(unit_price=Decimal('100'), quantity=1, payment_type='percentage', percentage_rate=0)
        with self.assertRaises(ValueError):
            OrderPricing(unit_price=Decimal('100'), quantity=1, payment_type='percentage', percentage_rate=101)
        with self.assertRaises(ValueError):
            OrderPricing(unit_price=Decimal('100'), quantity=0)
        with self.assertRaises(ValueError):
            OrderPricing(unit_price=Decimal('-1'), quantity=1)
        with self.assertRaises(ValueError):
            OrderPricing(unit_price=Decimal('100'), quantity=1, payment_type='installments')

    def test_percentage_rate_ignored_for_full_payment(self):
        """Test the deposit rate only matters for deposits."""
        pricing = OrderPricing(unit_price=Decimal('100'), quantity=1, percentage_rate=0)

        self.assertEqual(compute_amounts(pricing, Decimal('0.1')).amount_to_pay, Decimal('100'))

    def test_commission_rate_out_of_range(self):
        """Test the commission rate must be between 0 and 1."""
        pricing = OrderPricing(unit_price=Decimal('100'), quantity=1)

        with self.assertRaises(ValueError):
            compute_amounts(pricing, Decimal('1.5'))
        with self.assertRaises(ValueError):
            compute_amounts(pricing, Decimal('-0.1'))

    def test_referral_commission(self):
        """Test referral payout rounding."""
        self.assertEqual(referral_commission(Decimal('10000'), Decimal('0.02')), Decimal('200'))
        self.assertEqual(referral_commission(Decimal('1025'), Decimal('0.02')), Decimal('21'))


class HttpPaymentGatewayTests(TestCase):
    """Test the HTTP gateway client."""

    def _request(self):
        return PaymentRequest(
            amount=Decimal('3000'),
            currency='XOF',
            description='Order #1 - Portrait',
            customer_email='amina@example.com',
            customer_name='Amina Diallo',
            metadata={'order_id': 1},
        )

    def _gateway(self, handler):
        return HttpPaymentGateway(
            'https://gateway.example.com/v1/',
            'secret-key',
            transport=httpx.MockTransport(handler)
        )

    def test_initiate_payment(self):
        """Test a successful checkout session."""
        seen = {}

        def handler(request):
            seen['url'] = str(request.url)
            seen['auth'] = request.headers['Authorization']
            seen['body'] = json.loads(request.content)
            return httpx.Response(201, json={
                'data': {'id': 'tx-42', 'checkout_url': 'https://pay.example.com/tx-42'}
            })

        session = self._gateway(handler).initiate_payment(self._request())

        self.assertEqual(session.transaction_id, 'tx-42')
        self.assertEqual(session.checkout_url, 'https://pay.example.com/tx-42')
        self.assertEqual(seen['url'], 'https://gateway.example.com/v1/payments/initialize')
        self.assertEqual(seen['auth'], 'Bearer secret-key')
        self.assertEqual(seen['body']['amount'], 3000)
        self.assertEqual(seen['body']['customer']['first_name'], 'Amina')
        self.assertEqual(seen['body']['metadata'], {'order_id': '1'})

    def test_refused_payment(self):
        """Test an error status becomes PaymentGatewayError."""
        gateway = self._gateway(lambda request: httpx.Response(422, json={'message': 'invalid'}))

        with self.assertRaises(PaymentGatewayError):
            gateway.initiate_payment(self._request())

    def test_unreachable_gateway(self):
        """Test a transport error becomes PaymentGatewayError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(PaymentGatewayError):
            self._gateway(handler).initiate_payment(self._request())

    def test_response_without_checkout_url(self):
        """Test an incomplete response is rejected."""
        gateway = self._gateway(lambda request: httpx.Response(200, json={'data': {'id': 'tx-1'}}))

        with self.assertRaises(PaymentGatewayError):
            gateway.initiate_payment(self._request())


class GiftCardServiceTests(TestCase):
    """Test gift card redemption."""

    def setUp(self):
        """Create a gift card and an order to redeem it against."""
        self.gift_card = GiftCard.objects.create(code='GIFT-5000', balance=Decimal('5000'), currency='XOF')
        self.order = services.create_order(
            OrderCreateData(item_name='Portrait', unit_price=Decimal('1000'), customer_email='amina@example.com'),
            gateway=FakeGateway()
        )

    def test_redeem_gift_card(self):
        """Test redeeming part of the balance."""
        redemption = services.redeem_gift_card(self.gift_card, self.order, Decimal('1200'))

        self.gift_card.refresh_from_db()
        self.assertEqual(self.gift_card.balance, Decimal('3800'))
        self.assertEqual(redemption.amount, Decimal('1200'))

    def test_redeem_more_than_balance(self):
        """Test redeeming more than the balance is refused."""
        with self.assertRaises(services.GiftCardError):
            services.redeem_gift_card(self.gift_card, self.order, Decimal('6000'))

        self.gift_card.refresh_from_db()
        self.assertEqual(self.gift_card.balance, Decimal('5000'))

    def test_redeem_inactive_card(self):
        """Test inactive cards cannot be redeemed."""
        GiftCard.objects.filter(pk=self.gift_card.pk).update(is_active=False)

        with self.assertRaises(services.GiftCardError):
            services.redeem_gift_card(self.gift_card, self.order, Decimal('100'))

    def test_find_gift_card_checks_currency(self):
        """Test a card in another currency is refused."""
        with self.assertRaises(services.GiftCardError):
            services.find_gift_card('GIFT-5000', 'EUR')
        with self.assertRaises(services.GiftCardError):
            services.find_gift_card('NOPE', 'XOF')


@override_settings(
    PLATFORM_COMMISSION_RATE=Decimal('0.10'),
    PLATFORM_COMMISSION_BASE='order_total',
    DEFAULT_CURRENCY='XOF'
)
class CreateOrderServiceTests(TestCase):
    """Test order creation and its best-effort side effects."""

    def _data(self, **overrides):
        values = dict(
            item_name='Wedding photography',
            unit_price=Decimal('10000'),
            customer_email='amina@example.com',
            customer_name='Amina Diallo',
        )
        values.update(overrides)
        return OrderCreateData(**values)

    def test_create_order_starts_payment(self):
        """Test a full payment order with a checkout session."""
        gateway = FakeGateway()

        order = services.create_order(self._data(quantity=2), gateway=gateway)

        order.refresh_from_db()
        self.assertEqual(order.total_price, Decimal('20000'))
        self.assertEqual(order.platform_commission, Decimal('2000'))
        self.assertEqual(order.seller_amount, Decimal('18000'))
        self.assertEqual(order.currency, 'XOF')
        self.assertEqual(order.payment_status, Order.PAYMENT_INITIATED)
        self.assertEqual(order.transaction_id, 'tx-1')
        self.assertEqual(gateway.requests[0].amount, Decimal('20000'))
        self.assertEqual(gateway.requests[0].customer_email, 'amina@example.com')

    def test_deposit_order(self):
        """Test a deposit charges only the deposit."""
        gateway = FakeGateway()

        order = services.create_order(self._data(payment_type='percentage'), gateway=gateway)

        self.assertEqual(order.amount_to_pay, Decimal('3000'))
        self.assertEqual(order.remaining_amount, Decimal('7000'))
        self.assertEqual(gateway.requests[0].amount, Decimal('3000'))

    def test_gateway_failure_keeps_order(self):
        """Test a payment failure is logged and the order kept."""
        with self.assertLogs('orders.services', level='ERROR') as logs:
            order = services.create_order(self._data(), gateway=FailingGateway())

        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        self.assertEqual(order.payment_status, Order.PAYMENT_FAILED)
        self.assertIn('Payment initiation failed', logs.output[0])

    def test_gift_card_covers_deposit(self):
        """Test a gift card covering everything skips the gateway."""
        gift_card = GiftCard.objects.create(code='GIFT-5000', balance=Decimal('5000'), currency='XOF')
        gateway = FakeGateway()

        order = services.create_order(
            self._data(payment_type='percentage', gift_card_code='GIFT-5000'),
            gateway=gateway
        )

        gift_card.refresh_from_db()
        self.assertEqual(order.gift_card_amount, Decimal('3000'))
        self.assertEqual(order.final_amount_to_pay, Decimal('0'))
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(gift_card.balance, Decimal('2000'))
        self.assertEqual(gateway.requests, [])

    def test_gift_card_partially_covers_order(self):
        """Test the gateway charges what the gift card does not cover."""
        gift_card = GiftCard.objects.create(code='GIFT-1000', balance=Decimal('1000'), currency='XOF')
        gateway = FakeGateway()

        order = services.create_order(self._data(gift_card_code='GIFT-1000'), gateway=gateway)

        gift_card.refresh_from_db()
        self.assertEqual(gift_card.balance, Decimal('0'))
        self.assertEqual(order.final_amount_to_pay, Decimal('9000'))
        self.assertEqual(gateway.requests[0].amount, Decimal('9000'))
        self.assertEqual(GiftCardRedemption.objects.get(order=order).amount, Decimal('1000'))

    def test_gift_card_debit_failure_keeps_order(self):
        """Test a failed gift card debit is logged and does not undo the order."""
        GiftCard.objects.create(code='GIFT-1000', balance=Decimal('1000'), currency='XOF')
        failure = services.GiftCardError("The gift card balance is too low.")

        with mock.patch.object(services, 'redeem_gift_card', side_effect=failure):
            with self.assertLogs('orders.services', level='ERROR') as logs:
                order = services.create_order(self._data(gift_card_code='GIFT-1000'), gateway=FakeGateway())

        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        self.assertEqual(order.payment_status, Order.PAYMENT_INITIATED)
        self.assertIn('Gift card debit failed', logs.output[0])

    def test_unknown_gift_card_rejects_order(self):
        """Test an invalid gift card code stops the order before it is saved."""
        with self.assertRaises(services.GiftCardError):
            services.create_order(self._data(gift_card_code='NOPE'), gateway=FakeGateway())

        self.assertEqual(Order.objects.count(), 0)

    def test_invalid_pricing_rejects_order(self):
        """Test invalid pricing stops the order before it is saved."""
        with self.assertRaises(ValueError):
            services.create_order(self._data(payment_type='percentage', percentage_rate=0), gateway=FakeGateway())

        self.assertEqual(Order.objects.count(), 0)

    @override_settings(REFERRAL_COMMISSION_RATE=Decimal('0.02'))
    def test_referral_commission_recorded(self):
        """Test referred orders record the referral payout."""
        order = services.create_order(self._data(referrer_email='friend@example.com'), gateway=FakeGateway())

        self.assertEqual(order.referral_commission, Decimal('200'))

    @override_settings(PLATFORM_COMMISSION_BASE='amount_collected')
    def test_commission_base_setting(self):
        """Test the commission base follows the setting."""
        order = services.create_order(self._data(payment_type='percentage'), gateway=FakeGateway())

        self.assertEqual(order.platform_commission, Decimal('300'))
        self.assertEqual(order.commission_base, 'amount_collected')


@override_settings(PLATFORM_COMMISSION_RATE=Decimal('0.10'), PLATFORM_COMMISSION_BASE='order_total')
class OrderAPITests(APITestCase):
    """Test order API endpoints."""

    def setUp(self):
        """Set up API client."""
        self.client = APIClient()

    def test_quote(self):
        """Test quoting a deposit with a gift card."""
        response = self.client.post('/api/orders/quote/', {
            'unit_price': '10000',
            'payment_type': 'percentage',
            'percentage_rate': 30,
            'gift_card_amount': '5000',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['amount_to_pay'], '3000.00')
        self.assertEqual(response.data['remaining_amount'], '7000.00')
        self.assertEqual(response.data['final_amount_to_pay'], '0.00')
        self.assertEqual(response.data['platform_commission'], '1000.00')

    def test_quote_with_invalid_rate(self):
        """Test an out-of-range deposit rate is rejected."""
        response = self.client.post('/api/orders/quote/', {
            'unit_price': '10000',
            'payment_type': 'percentage',
            'percentage_rate': 150,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_and_retrieve_order(self):
        """Test creating an order and reading it back."""
        with mock.patch('orders.services.get_payment_gateway', return_value=FakeGateway()):
            response = self.client.post('/api/orders/', {
                'item_name': 'Logo design',
                'unit_price': '1000',
                'quantity': 2,
                'customer_email': 'amina@example.com',
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_price'], '2000.00')
        self.assertEqual(response.data['payment_status'], 'initiated')
        self.assertEqual(response.data['checkout_url'], 'https://pay.example.com/checkout/tx-1')

        detail = self.client.get(f"/api/orders/{response.data['id']}/")
        self.assertEqual(detail.data['seller_amount'], '1800.00')

    def test_create_order_with_unknown_gift_card(self):
        """Test an invalid gift card code gives a 400 with a message."""
        with mock.patch('orders.services.get_payment_gateway', return_value=FakeGateway()):
            response = self.client.post('/api/orders/', {
                'item_name': 'Logo design',
                'unit_price': '1000',
                'customer_email': 'amina@example.com',
                'gift_card_code': 'NOPE',
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'This gift card is not valid.')
