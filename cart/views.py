"""
Cart API Views.

Implements:
- GET /cart/ - the caller's cart
- POST /cart/items/ - add a product
- PATCH /cart/items/{product_id}/ - increment / decrement quantity
- DELETE /cart/items/{product_id}/ - remove a product
"""
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import rate_limit
from . import services
from .serializers import CartSerializer, CartItemAddSerializer, CartItemUpdateSerializer


class CartView(APIView):

    def get(self, request):
        cart = services.get_cart(request.user)
        return Response(CartSerializer(cart, context={'request': request}).data)


class CartItemAddView(APIView):

    @rate_limit(max_requests=60, window_seconds=60)
    def post(self, request):
        serializer = CartItemAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = services.add_item(
            request.user,
            serializer.validated_data['product_id'],
            serializer.validated_data['quantity'],
        )
        return Response(CartSerializer(cart, context={'request': request}).data)


class CartItemDetailView(APIView):

    def patch(self, request, product_id):
        serializer = CartItemUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = services.change_quantity(request.user, product_id, serializer.validated_data['type'])
        return Response(CartSerializer(cart, context={'request': request}).data)

    def delete(self, request, product_id):
        cart = services.remove_item(request.user, product_id)
        return Response(CartSerializer(cart, context={'request': request}).data)
