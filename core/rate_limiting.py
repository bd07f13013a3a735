"""
Redis-based rate limiting for API endpoints.

Fixed-window counter per (endpoint, client): authenticated requests are
keyed by user id, anonymous ones by client IP. Fails open when Redis is
unreachable.
"""
import logging
from functools import wraps

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import Throttled
from rest_framework.response import Response

logger = logging.getLogger(__name__)

# Initialize Redis client
try:
    redis_client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=2
    )
    redis_client.ping()
except (redis.ConnectionError, redis.TimeoutError) as e:
    logger.warning(f"Redis connection failed: {e}. Rate limiting will be disabled.")
    redis_client = None


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR', 'unknown')
    return ip


def get_client_key(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return f"user:{user.pk}"
    return f"ip:{get_client_ip(request)}"


def rate_limiting_active():
    return getattr(settings, 'RATE_LIMIT_ENABLED', True) and redis_client is not None


def hit(scope, request, max_requests, window_seconds):
    """
    Count one request against the window.

    Returns (allowed, remaining, ttl).
    """
    key = f"rate_limit:{scope}:{get_client_key(request)}"
    current_count = redis_client.incr(key)

    # Set expiry on first request
    if current_count == 1:
        redis_client.expire(key, window_seconds)

    ttl = redis_client.ttl(key)
    return current_count <= max_requests, max(0, max_requests - current_count), ttl


def limit_exceeded_response(max_requests, window_seconds, ttl):
    return Response(
        {
            'error': 'Rate limit exceeded',
            'detail': f'Maximum {max_requests} requests per {window_seconds} seconds allowed.',
            'retry_after': ttl
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={
            'X-RateLimit-Limit': str(max_requests),
            'X-RateLimit-Remaining': '0',
            'X-RateLimit-Reset': str(ttl),
            'Retry-After': str(ttl)
        }
    )


def add_rate_limit_headers(response, max_requests, remaining, ttl):
    response['X-RateLimit-Limit'] = str(max_requests)
    response['X-RateLimit-Remaining'] = str(remaining)
    response['X-RateLimit-Reset'] = str(ttl)
    return response


def rate_limit(max_requests: int = 20, window_seconds: int = 60):
    """
    Redis-based rate limiting decorator for DRF view methods.

    Usage:
        @rate_limit(20, 60)  # 20 requests per minute
        def post(self, request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            if not rate_limiting_active():
                return view_func(self, request, *args, **kwargs)

            try:
                allowed, remaining, ttl = hit(
                    f"{self.__class__.__name__}.{view_func.__name__}",
                    request, max_requests, window_seconds
                )
            except redis.RedisError as e:
                logger.error(f"Redis error in rate limiting: {e}")
                # Fail open - allow request if Redis is down
                return view_func(self, request, *args, **kwargs)

            if not allowed:
                return limit_exceeded_response(max_requests, window_seconds, ttl)

            response = view_func(self, request, *args, **kwargs)
            return add_rate_limit_headers(response, max_requests, remaining, ttl)

        return wrapper
    return decorator


class RateLimitMixin:
    """
    Mixin class for class-based views to rate limit every method.

    Usage:
        class MyView(RateLimitMixin, APIView):
            rate_limit_max_requests = 20
            rate_limit_window_seconds = 60
    """
    rate_limit_max_requests = 20
    rate_limit_window_seconds = 60

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self._rate_limit_state = None
        if not rate_limiting_active():
            return
        try:
            allowed, remaining, ttl = hit(
                self.__class__.__name__, request,
                self.rate_limit_max_requests, self.rate_limit_window_seconds
            )
        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return
        if not allowed:
            raise Throttled(
                wait=ttl,
                detail=f'Maximum {self.rate_limit_max_requests} requests per '
                       f'{self.rate_limit_window_seconds} seconds allowed.'
            )
        self._rate_limit_state = (remaining, ttl)

    def finalize_response(self, request, response, *args, **kwargs):
        state = getattr(self, '_rate_limit_state', None)
        if state is not None:
            remaining, ttl = state
            add_rate_limit_headers(response, self.rate_limit_max_requests, remaining, ttl)
        return super().finalize_response(request, response, *args, **kwargs)
