"""
Inventory API Views.

Implements:
- GET/POST /products/ - list active products (search by name), create
- GET/PUT/PATCH/DELETE /products/{id}/ - product detail and admin edits
"""
import logging

from django.db.models import ProtectedError
from rest_framework import generics, status
from rest_framework.response import Response

from core.permissions import IsAdminOrManagerOrReadOnly, STAFF_ROLES
from .models import Product
from .serializers import ProductSerializer

logger = logging.getLogger(__name__)


class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET: List products
    POST: Create a new product (admin/manager)

    Query Parameters:
        - search: case-insensitive match on product name
        - alert_level: filter by alert level (staff only)

    Inactive products are only listed for admin/manager.
    """
    serializer_class = ProductSerializer
    permission_classes = [IsAdminOrManagerOrReadOnly]

    def get_queryset(self):
        queryset = Product.objects.all()
        user = self.request.user

        if user.role not in STAFF_ROLES:
            queryset = queryset.filter(status=Product.Status.ACTIVE)
        else:
            alert_level = self.request.query_params.get('alert_level', '').upper()
            if alert_level in Product.AlertLevel.values:
                queryset = queryset.filter(alert_level=alert_level)

        search = self.request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(name__icontains=search)

        return queryset.order_by('-created_at')


class ProductDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product
    PUT/PATCH: Update a product (admin/manager)
    DELETE: Delete a product (admin/manager); refused while orders reference it
    """
    serializer_class = ProductSerializer
    permission_classes = [IsAdminOrManagerOrReadOnly]

    def get_queryset(self):
        if self.request.user.role in STAFF_ROLES:
            return Product.objects.all()
        return Product.objects.filter(status=Product.Status.ACTIVE)

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        try:
            product.delete()
        except ProtectedError:
            logger.warning(f"Refused to delete product {product.pk}: referenced by orders")
            return Response(
                {
                    'error': 'Conflict',
                    'detail': 'Product is referenced by orders; set it INACTIVE instead'
                },
                status=status.HTTP_409_CONFLICT
            )
        logger.info(f"Product {product.pk} deleted by user {request.user.pk}")
        return Response(status=status.HTTP_204_NO_CONTENT)
