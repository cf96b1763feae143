"""
URL routing for the orders API.
"""

from django.urls import path
from .views import OrderCreateView, OrderDetailView, QuoteView

urlpatterns = [
    path('', OrderCreateView.as_view(), name='order-create'),
    path('quote/', QuoteView.as_view(), name='order-quote'),
    path('<int:pk>/', OrderDetailView.as_view(), name='order-detail'),
]
