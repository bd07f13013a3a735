"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.
"""
from django.db import transaction
from rest_framework import serializers

from orders.pricing import pricing_for_user
from . import ledger
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    """
    Serializer for Product model.

    stock_qty is writable but routed through the ledger so the alert level
    is recomputed. unit_price is the price the requesting user pays.
    """
    stock_qty = serializers.IntegerField(min_value=0, required=False)
    unit_price = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'sku', 'category', 'image_url',
            'customer_price', 'dealer_price', 'unit_price',
            'stock_qty', 'alert_level', 'status',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'alert_level', 'created_at', 'updated_at']

    def get_unit_price(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return str(obj.customer_price)
        return str(pricing_for_user(request.user).unit_price_for(obj))

    def create(self, validated_data):
        stock_qty = validated_data.pop('stock_qty', 0)
        with transaction.atomic():
            product = super().create(validated_data)
            return ledger.set_stock(product.pk, stock_qty)

    def update(self, instance, validated_data):
        stock_qty = validated_data.pop('stock_qty', None)
        with transaction.atomic():
            product = super().update(instance, validated_data)
            if stock_qty is not None and stock_qty != product.stock_qty:
                product = ledger.set_stock(product.pk, stock_qty)
        return product


class ProductMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested representations."""
    class Meta:
        model = Product
        fields = ['id', 'name', 'customer_price', 'dealer_price']
