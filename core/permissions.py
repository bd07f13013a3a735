"""
Role-based permissions for API views and the service layer.
"""
from rest_framework.permissions import BasePermission

from .exceptions import ForbiddenError

STAFF_ROLES = ('ADMIN', 'MANAGER')


class IsActiveUser(BasePermission):
    """Authenticated and not deactivated by an admin/manager."""
    message = 'Account is missing or inactive.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_active)


class IsAdminOrManager(IsActiveUser):
    message = 'Access denied'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.user.role in STAFF_ROLES


class IsAdminRole(IsActiveUser):
    message = 'Only admin can manage users'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.user.role == 'ADMIN'


class IsAdminOrManagerOrReadOnly(IsActiveUser):
    """Anyone active may read; only admin/manager may write."""

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return True
        return request.user.role in STAFF_ROLES


def require_roles(user, roles, message='Access denied'):
    """Raise ForbiddenError unless user holds one of roles."""
    if user.role not in roles:
        raise ForbiddenError(message)
