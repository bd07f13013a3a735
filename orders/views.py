"""
Order API Views.

Implements:
- GET /orders/ - own orders (admin/manager: all orders)
- POST /orders/ - place an order directly from an item list
- POST /orders/checkout/ - convert the caller's cart into an order
- GET/DELETE /orders/{id}/ - order detail / delete with stock restore
- PUT /orders/{id}/items/ - replace items
- POST /orders/{id}/accept/ | /reject/ - approval workflow
- PUT /orders/{id}/invoice/ - assign invoice number, completing the order
- GET/PUT /bills/{order_id}/ - bill draft / save
"""
import logging
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsAdminOrManager, STAFF_ROLES
from core.rate_limiting import RateLimitMixin, rate_limit
from . import billing, services
from .models import Order
from .serializers import (
    BillDraftSerializer,
    BillSerializer,
    InvoiceNumberSerializer,
    OrderItemsSerializer,
    OrderListSerializer,
    OrderSerializer,
)

logger = logging.getLogger(__name__)


def _order_response(order_id, status_code=status.HTTP_200_OK):
    # Fetch fresh order with all relations
    order = Order.objects.prefetch_related('items__product').get(pk=order_id)
    return Response(OrderSerializer(order).data, status=status_code)


class OrderListCreateView(generics.ListCreateAPIView):
    """
    GET: List orders with optimized queries
    POST: Place an order from an explicit item list

    Query Parameters (GET):
        - status: Filter by status (PENDING, PROCESSING, COMPLETED, CANCELLED)
        - user_id: Filter by buyer (admin/manager only)

    Request Body (POST):
    {
        "items": [
            {"product_id": 1, "quantity": 2},
            {"product_id": 3, "quantity": 1}
        ]
    }
    """

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return OrderItemsSerializer
        return OrderListSerializer

    def get_queryset(self):
        user = self.request.user
        queryset = Order.objects.prefetch_related('items')

        if user.role in STAFF_ROLES:
            user_id = self.request.query_params.get('user_id')
            if user_id:
                queryset = queryset.filter(user_id=user_id)
        else:
            queryset = queryset.filter(user=user)

        status_filter = self.request.query_params.get('status', '').upper()
        if status_filter in Order.Status.values:
            queryset = queryset.filter(status=status_filter)

        return queryset.order_by('-created_at')

    @rate_limit(max_requests=20, window_seconds=60)
    def post(self, request, *args, **kwargs):
        serializer = OrderItemsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = services.create_order(request.user, serializer.validated_data['items'])
        return _order_response(order.pk, status.HTTP_201_CREATED)


class OrderCheckoutView(RateLimitMixin, APIView):
    """
    POST: Convert the caller's cart into a PENDING order.

    Returns:
        - 201: Order created, cart emptied
        - 400: Cart empty
        - 409: Insufficient stock (cart untouched)
    """
    rate_limit_max_requests = 10
    rate_limit_window_seconds = 60

    def post(self, request):
        order = services.convert_cart(request.user)
        return _order_response(order.pk, status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """
    GET: Retrieve order details with all items.
    DELETE: Delete the order and restore its stock.
    """

    def get(self, request, pk):
        order = services.get_order(request.user, pk)
        return _order_response(order.pk)

    def delete(self, request, pk):
        services.delete_order(request.user, pk)
        return Response(
            {'success': True, 'detail': 'Order deleted & stock restored.'},
            status=status.HTTP_200_OK
        )


class OrderItemsView(APIView):
    """PUT: Replace the items of a PENDING/PROCESSING, uninvoiced order."""

    def put(self, request, pk):
        serializer = OrderItemsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.edit_order_items(request.user, pk, serializer.validated_data['items'])
        return _order_response(order.pk)


class OrderAcceptView(APIView):
    permission_classes = [IsAdminOrManager]

    def post(self, request, pk):
        order = services.accept_order(request.user, pk)
        return _order_response(order.pk)


class OrderRejectView(APIView):
    permission_classes = [IsAdminOrManager]

    def post(self, request, pk):
        order = services.reject_order(request.user, pk)
        return _order_response(order.pk)


class OrderInvoiceView(APIView):
    """PUT: Assign an invoice number; completes the order."""
    permission_classes = [IsAdminOrManager]

    def put(self, request, pk):
        serializer = InvoiceNumberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.add_invoice_number(
            request.user, pk, serializer.validated_data['invoice_number']
        )
        return _order_response(order.pk)


class BillView(APIView):
    """
    GET: Saved bill for the order, or a draft computed from it.
    PUT: Create or replace the bill with admin-entered figures.
    """
    permission_classes = [IsAdminOrManager]

    def get(self, request, order_id):
        bill = billing.get_bill(request.user, order_id)
        if isinstance(bill, dict):
            return Response(BillDraftSerializer(bill).data)
        return Response(BillSerializer(bill).data)

    def put(self, request, order_id):
        serializer = BillSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bill = billing.save_bill(request.user, order_id, serializer.validated_data)
        return Response(BillSerializer(bill).data)
