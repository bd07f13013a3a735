"""
User API Views.

Implements:
- GET /users/me/ - the caller's own account
- GET/POST /users/ - list (admin/manager), create (admin)
- GET/PUT/PATCH/DELETE /users/{id}/ - detail (admin/manager), edit and delete (admin)
- POST /users/{id}/status/ - toggle active flag (admin/manager)
"""
import logging

from django.contrib.auth import get_user_model
from django.db.models import ProtectedError
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsAdminOrManager, IsAdminRole
from .serializers import UserSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


class MeView(APIView):

    def get(self, request):
        return Response(UserSerializer(request.user).data)


class UserListCreateView(generics.ListCreateAPIView):
    """
    GET: List users (admin/manager)
    POST: Create a user (admin)

    Query Parameters:
        - role: Filter by role
    """
    serializer_class = UserSerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAdminRole()]
        return [IsAdminOrManager()]

    def get_queryset(self):
        queryset = User.objects.all()
        role = self.request.query_params.get('role', '').upper()
        if role in User.Role.values:
            queryset = queryset.filter(role=role)
        return queryset.order_by('-date_joined')

    def perform_create(self, serializer):
        user = serializer.save()
        logger.info(f"User {user.pk} ({user.role}) created by user {self.request.user.pk}")


class UserDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a user (admin/manager)
    PUT/PATCH: Update a user (admin)
    DELETE: Delete a user (admin); refused while the user has orders
    """
    queryset = User.objects.all()
    serializer_class = UserSerializer

    def get_permissions(self):
        if self.request.method in ('GET', 'HEAD', 'OPTIONS'):
            return [IsAdminOrManager()]
        return [IsAdminRole()]

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        try:
            user.delete()
        except ProtectedError:
            logger.warning(f"Refused to delete user {user.pk}: has orders")
            return Response(
                {'error': 'Conflict', 'detail': 'User has orders; deactivate instead'},
                status=status.HTTP_409_CONFLICT
            )
        logger.info(f"User {user.pk} deleted by user {request.user.pk}")
        return Response(status=status.HTTP_204_NO_CONTENT)


class UserStatusView(APIView):
    """POST: Flip a user's active flag."""
    permission_classes = [IsAdminOrManager]

    def post(self, request, pk):
        user = generics.get_object_or_404(User, pk=pk)
        user.is_active = not user.is_active
        user.save(update_fields=['is_active'])
        logger.info(f"User {user.pk} active={user.is_active} set by user {request.user.pk}")
        return Response({'success': True, 'is_active': user.is_active})
