"""
Root URL configuration for the Order Management API.

Every app mounts its routes under /api/.
"""
import logging

from django.contrib import admin
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.urls import path, include

from core import rate_limiting

logger = logging.getLogger(__name__)


def health_check(request):
    """Database reachability (required) and Redis availability (informational)."""
    checks = {}
    try:
        connection.ensure_connection()
        checks['database'] = 'ok'
    except DatabaseError as e:
        logger.error(f"Health check: database unreachable: {e}")
        checks['database'] = 'unavailable'

    checks['redis'] = 'ok' if rate_limiting.redis_client is not None else 'disabled'

    healthy = checks['database'] == 'ok'
    return JsonResponse(
        {
            'status': 'healthy' if healthy else 'degraded',
            'service': 'order-management-api',
            'checks': checks,
        },
        status=200 if healthy else 503
    )


urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_check, name='health-check'),
    path('api/', include('accounts.urls')),
    path('api/', include('inventory.urls')),
    path('api/', include('cart.urls')),
    path('api/', include('orders.urls')),
]
