"""
Django Admin configuration for order models.
"""
from django.contrib import admin
from .models import Order, OrderItem, OrderSequence, Bill, BillItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'unit_price', 'subtotal']
    can_delete = False

    def subtotal(self, obj):
        return f"${obj.subtotal}"
    subtotal.short_description = 'Subtotal'


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        'order_number', 'user', 'status', 'payment_status',
        'invoice_number', 'final_amount', 'item_count', 'created_at'
    ]
    list_filter = ['status', 'payment_status', 'dealer_price_used', 'created_at']
    search_fields = ['order_number', 'invoice_number', 'user__username', 'customer_name']
    ordering = ['-created_at']
    # Lifecycle fields change only through the order services
    readonly_fields = [
        'order_number', 'user', 'status', 'invoice_number', 'dealer_price_used',
        'total_amount', 'final_amount', 'created_at', 'updated_at'
    ]
    inlines = [OrderItemInline]

    def item_count(self, obj):
        return obj.items.count()
    item_count.short_description = 'Items'

    def has_delete_permission(self, request, obj=None):
        # Deleting must restore stock; use the API
        return False


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0
    raw_id_fields = ['product']


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'customer_name', 'subtotal', 'discount', 'shipping_charge', 'total_amount']
    search_fields = ['order__order_number', 'customer_name']
    raw_id_fields = ['order']
    inlines = [BillItemInline]


@admin.register(OrderSequence)
class OrderSequenceAdmin(admin.ModelAdmin):
    list_display = ['prefix', 'last_value']
    readonly_fields = ['prefix', 'last_value']
