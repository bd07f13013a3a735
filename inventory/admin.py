"""
Django Admin configuration for inventory models.
"""
from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'name', 'customer_price', 'dealer_price',
        'stock_qty', 'alert_level', 'status', 'created_at'
    ]
    list_filter = ['status', 'alert_level', 'category', 'created_at']
    search_fields = ['name', 'sku', 'description']
    ordering = ['name']
    # Stock changes go through the ledger (API), never through the admin form
    readonly_fields = ['stock_qty', 'alert_level', 'created_at', 'updated_at']
