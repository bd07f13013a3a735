"""
Serializers for the cart.
"""
from rest_framework import serializers

from inventory.serializers import ProductMinimalSerializer
from orders.pricing import pricing_for_user
from .models import Cart, CartItem


class CartItemSerializer(serializers.ModelSerializer):
    """Cart line with the price the requesting user would pay."""
    product = ProductMinimalSerializer(read_only=True)
    unit_price = serializers.SerializerMethodField()
    subtotal = serializers.SerializerMethodField()
    in_stock = serializers.SerializerMethodField()

    class Meta:
        model = CartItem
        fields = ['id', 'product', 'quantity', 'unit_price', 'subtotal', 'in_stock']

    def _unit_price(self, obj):
        return pricing_for_user(self.context['request'].user).unit_price_for(obj.product)

    def get_unit_price(self, obj):
        return str(self._unit_price(obj))

    def get_subtotal(self, obj):
        return str(self._unit_price(obj) * obj.quantity)

    def get_in_stock(self, obj):
        return obj.product.stock_qty >= obj.quantity


class CartSerializer(serializers.ModelSerializer):
    items = serializers.SerializerMethodField()
    total_items = serializers.SerializerMethodField()

    class Meta:
        model = Cart
        fields = ['id', 'items', 'total_items', 'updated_at']

    def get_items(self, obj):
        items = obj.items.select_related('product')
        return CartItemSerializer(items, many=True, context=self.context).data

    def get_total_items(self, obj):
        return obj.items.count()


class CartItemAddSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)


class CartItemUpdateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['inc', 'dec'])
