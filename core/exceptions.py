"""
Service-layer errors and their mapping to API responses.

Services raise these; views let them propagate and the DRF exception
handler below turns them into JSON responses. Database errors are not
handled here and surface as 500s.
"""
import logging

from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for recoverable order/inventory errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    label = 'Error'


class OrderValidationError(ServiceError):
    """Raised when an item list is malformed."""
    label = 'Validation Error'


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    label = 'Not Found'


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    label = 'Forbidden'


class InvalidTransitionError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    label = 'Invalid Transition'


class DuplicateInvoiceError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    label = 'Duplicate'


class EmptyCartError(ServiceError):
    label = 'Empty Cart'

    def __init__(self, message='Cart is empty'):
        super().__init__(message)


class InsufficientStockError(ServiceError):
    """Raised when there's not enough stock for an order item."""
    status_code = status.HTTP_409_CONFLICT
    label = 'Insufficient Stock'

    def __init__(self, product_id: int, requested: int, available: int, product_name: str = ''):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        name = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {name}: "
            f"requested {requested}, available {available}"
        )


def api_exception_handler(exc, context):
    """
    DRF exception handler that understands ServiceError.

    Response format matches the rest of the API:
        {"error": "<label>", "detail": "<message>"}
    """
    if isinstance(exc, ServiceError):
        view = context.get('view')
        logger.warning(
            f"{exc.label} in {view.__class__.__name__ if view else 'unknown view'}: {exc}"
        )
        payload = {'error': exc.label, 'detail': str(exc)}
        if isinstance(exc, InsufficientStockError):
            payload.update({
                'product_id': exc.product_id,
                'requested': exc.requested,
                'available': exc.available,
            })
        return Response(payload, status=exc.status_code)

    # rest_framework.views imports core.permissions at load time
    from rest_framework.views import exception_handler
    return exception_handler(exc, context)
