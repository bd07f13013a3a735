"""
Tests for the API exception handler, Redis rate limiting and the health check.
"""
from io import StringIO
from unittest.mock import MagicMock, patch

import redis
from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.test import APIRequestFactory
from rest_framework.views import APIView

from core.exceptions import (
    EmptyCartError,
    InsufficientStockError,
    InvalidTransitionError,
    api_exception_handler,
)
from core.rate_limiting import RateLimitMixin, rate_limit


class ExceptionHandlerTestCase(SimpleTestCase):

    def test_insufficient_stock_payload(self):
        response = api_exception_handler(InsufficientStockError(7, 5, 2, 'Widget'), {})

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {
            'error': 'Insufficient Stock',
            'detail': 'Insufficient stock for Widget: requested 5, available 2',
            'product_id': 7,
            'requested': 5,
            'available': 2,
        })

    def test_service_errors_map_to_status(self):
        response = api_exception_handler(InvalidTransitionError('nope'), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {'error': 'Invalid Transition', 'detail': 'nope'})

        response = api_exception_handler(EmptyCartError(), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'Cart is empty')

    def test_drf_exceptions_fall_through(self):
        response = api_exception_handler(NotFound(), {})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unknown_exceptions_are_not_handled(self):
        self.assertIsNone(api_exception_handler(ValueError('boom'), {}))


class LimitedView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    @rate_limit(max_requests=2, window_seconds=60)
    def get(self, request):
        return Response({'ok': True})


class LimitedMixinView(RateLimitMixin, APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    rate_limit_max_requests = 1
    rate_limit_window_seconds = 30

    def post(self, request):
        return Response({'ok': True})


def fake_redis():
    client = MagicMock()
    counts = {}

    def incr(key):
        counts[key] = counts.get(key, 0) + 1
        return counts[key]

    client.incr.side_effect = incr
    client.ttl.return_value = 42
    return client


@override_settings(RATE_LIMIT_ENABLED=True)
class RateLimitTestCase(SimpleTestCase):

    def setUp(self):
        self.factory = APIRequestFactory()

    def test_decorator_blocks_after_limit(self):
        view = LimitedView.as_view()
        with patch('core.rate_limiting.redis_client', fake_redis()) as client:
            first = view(self.factory.get('/limited/'))
            view(self.factory.get('/limited/'))
            third = view(self.factory.get('/limited/'))

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first['X-RateLimit-Remaining'], '1')
        self.assertEqual(third.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(third['Retry-After'], '42')
        client.expire.assert_called_once_with('rate_limit:LimitedView.get:ip:127.0.0.1', 60)

    def test_clients_are_counted_separately(self):
        view = LimitedView.as_view()
        with patch('core.rate_limiting.redis_client', fake_redis()):
            for _ in range(3):
                view(self.factory.get('/limited/'))
            response = view(self.factory.get('/limited/', HTTP_X_FORWARDED_FOR='10.0.0.9, 10.0.0.1'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_fails_open_when_redis_errors(self):
        client = MagicMock()
        client.incr.side_effect = redis.ConnectionError('down')
        view = LimitedView.as_view()

        with patch('core.rate_limiting.redis_client', client):
            for _ in range(3):
                response = view(self.factory.get('/limited/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_disabled_without_redis(self):
        view = LimitedView.as_view()
        with patch('core.rate_limiting.redis_client', None):
            for _ in range(3):
                response = view(self.factory.get('/limited/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    @override_settings(RATE_LIMIT_ENABLED=False)
    def test_disabled_by_setting(self):
        client = fake_redis()
        view = LimitedView.as_view()
        with patch('core.rate_limiting.redis_client', client):
            for _ in range(3):
                response = view(self.factory.get('/limited/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        client.incr.assert_not_called()

    def test_mixin_throttles_before_handler_runs(self):
        view = LimitedMixinView.as_view()
        with patch('core.rate_limiting.redis_client', fake_redis()):
            first = view(self.factory.post('/mixin/'))
            with patch.object(LimitedMixinView, 'post') as handler:
                second = view(self.factory.post('/mixin/'))

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first['X-RateLimit-Limit'], '1')
        self.assertEqual(second.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        handler.assert_not_called()


class HealthCheckTestCase(TestCase):

    def test_healthy(self):
        with patch('core.rate_limiting.redis_client', None):
            response = self.client.get('/health/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')
        self.assertEqual(response.json()['checks'], {'database': 'ok', 'redis': 'disabled'})

    def test_database_down(self):
        broken = MagicMock()
        broken.ensure_connection.side_effect = DatabaseError('gone')
        with patch('config.urls.connection', broken):
            response = self.client.get('/health/')

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['status'], 'degraded')


class SystemCheckTestCase(SimpleTestCase):

    def test_project_passes_system_checks(self):
        call_command('check', stdout=StringIO())

    def test_default_permission_classes_load(self):
        from rest_framework.settings import api_settings

        from core.permissions import IsActiveUser

        self.assertEqual(api_settings.DEFAULT_PERMISSION_CLASSES, [IsActiveUser])
