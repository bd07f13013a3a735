"""
Serializers for order models.
"""
from decimal import Decimal
from rest_framework import serializers
from .models import Order, OrderItem, Bill, BillItem
from inventory.serializers import ProductMinimalSerializer


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem with product details."""
    product = ProductMinimalSerializer(read_only=True)
    subtotal = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        read_only=True
    )

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'quantity', 'unit_price', 'subtotal']


class OrderItemInputSerializer(serializers.Serializer):
    """One requested line when placing or editing an order."""
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class OrderItemsSerializer(serializers.Serializer):
    """
    Serializer for placing an order directly or replacing its items.

    Request format:
    {
        "items": [
            {"product_id": 1, "quantity": 2},
            {"product_id": 3, "quantity": 1}
        ]
    }
    """
    items = OrderItemInputSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")

        product_ids = [item['product_id'] for item in value]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError("Duplicate products in order items")

        return value


class InvoiceNumberSerializer(serializers.Serializer):
    invoice_number = serializers.CharField(max_length=64, allow_blank=True, trim_whitespace=False)


class OrderSerializer(serializers.ModelSerializer):
    """
    Serializer for Order model with nested items.
    Uses prefetch_related for optimized queries.
    """
    items = OrderItemSerializer(many=True, read_only=True)
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'user_id', 'customer_name', 'customer_phone',
            'status', 'payment_status', 'invoice_number', 'dealer_price_used',
            'total_amount', 'final_amount', 'items',
            'created_at', 'updated_at'
        ]


class OrderListSerializer(serializers.ModelSerializer):
    """
    Optimized serializer for listing orders.
    """
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer_name', 'status', 'payment_status',
            'invoice_number', 'total_amount', 'final_amount', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        # Use prefetched items count if available
        if hasattr(obj, '_prefetched_objects_cache') and 'items' in obj._prefetched_objects_cache:
            return len(obj.items.all())
        return obj.items.count()


class BillItemSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)

    class Meta:
        model = BillItem
        fields = ['product_id', 'description', 'quantity', 'price', 'amount']
        extra_kwargs = {'description': {'required': False}}


class BillSerializer(serializers.ModelSerializer):
    """
    Serializer for saving and showing a bill.

    subtotal and total_amount may be omitted; they are then computed.
    """
    items = BillItemSerializer(many=True)
    order_id = serializers.IntegerField(read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=Decimal('0'))
    shipping_charge = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=Decimal('0'))
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    saved = serializers.SerializerMethodField()

    class Meta:
        model = Bill
        fields = [
            'id', 'order_id', 'order_number',
            'customer_name', 'customer_phone', 'customer_address',
            'items', 'subtotal', 'discount', 'shipping_charge', 'total_amount',
            'saved', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        extra_kwargs = {
            'customer_name': {'required': False},
            'customer_phone': {'required': False},
            'customer_address': {'required': False},
        }

    def get_saved(self, obj):
        return True


class BillDraftItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    description = serializers.CharField()
    quantity = serializers.IntegerField()
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class BillDraftSerializer(serializers.Serializer):
    """Read-only shape of a bill computed from an order that has no saved bill."""
    order_id = serializers.IntegerField()
    order_number = serializers.CharField()
    customer_name = serializers.CharField()
    customer_phone = serializers.CharField()
    customer_address = serializers.CharField()
    items = BillDraftItemSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    shipping_charge = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    saved = serializers.BooleanField()
