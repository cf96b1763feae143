"""Views for orders."""

from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Order
from .pricing import OrderPricing
from .serializers import (
    OrderAmountsSerializer,
    OrderCreateSerializer,
    OrderReadSerializer,
    QuoteSerializer,
)
from . import services
from .types import OrderCreateData


class QuoteView(APIView):
    """
    Compute an order's amounts without creating it.

    POST /api/orders/quote/
    """

    def post(self, request):
        serializer = QuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        amounts = services.quote_order(OrderPricing(**serializer.validated_data))
        return Response(OrderAmountsSerializer(amounts).data)


class OrderCreateView(APIView):
    """
    Create an order and start its payment.

    POST /api/orders/
    """

    def post(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = services.create_order(OrderCreateData(**serializer.validated_data))

        return Response(OrderReadSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """
    Retrieve an order.

    GET /api/orders/{id}/
    """

    def get(self, request, pk):
        order = get_object_or_404(Order, pk=pk)
        return Response(OrderReadSerializer(order).data)
