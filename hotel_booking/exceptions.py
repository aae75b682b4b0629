from rest_framework.response import Response
from rest_framework.views import exception_handler

from .services import BookingError


def booking_exception_handler(exc, context):
    """Render rejected operations as ``{"error": message}``.

    Field validation errors keep DRF's per-field mapping.
    """
    if isinstance(exc, BookingError):
        return Response({'error': exc.message}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None and isinstance(response.data, dict) and set(response.data) == {'detail'}:
        response.data = {'error': response.data['detail']}
    return response
