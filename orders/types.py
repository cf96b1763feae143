"""
Data types for the order service.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .pricing import DEFAULT_PERCENTAGE_RATE


@dataclass
class OrderCreateData:
    """DTO for order creation."""
    item_name: str
    unit_price: Decimal
    customer_email: str
    quantity: int = 1
    payment_type: str = 'full'
    percentage_rate: int = DEFAULT_PERCENTAGE_RATE
    gift_card_code: Optional[str] = None
    customer_name: str = ''
    customer_phone: str = ''
    referrer_email: str = ''
    currency: Optional[str] = None
