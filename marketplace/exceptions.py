"""
API exception handling.

Service and calculation functions raise ``ValueError`` (and models raise
Django's ``ValidationError``) with messages meant for the end user. Those
reach the client as HTTP 400 instead of a server error.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """Extend DRF's handler with domain validation errors."""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        logger.info("Rejected request with validation error: %s", detail)
        return Response({'detail': detail}, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, ValueError):
        logger.info("Rejected request: %s", exc)
        return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    return None
