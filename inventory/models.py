"""
Inventory Models - catalog products with stock tracking.

Models:
    - Product: item for sale with retail and dealer prices, stock quantity
      and a stock alert level derived from that quantity
"""
from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal


class Product(models.Model):
    """
    Product entity representing items available for sale.

    stock_qty and alert_level are written only by inventory.ledger so that
    alert_level always matches the current stock.
    """

    class Status(models.TextChoices):
        ACTIVE = 'ACTIVE', 'Active'
        INACTIVE = 'INACTIVE', 'Inactive'

    class AlertLevel(models.TextChoices):
        NONE = 'NONE', 'None'
        WARNING = 'WARNING', 'Warning'
        LOW = 'LOW', 'Low'
        CRITICAL = 'CRITICAL', 'Critical'

    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Product name for display and search"
    )
    description = models.TextField(
        blank=True,
        default='',
        help_text="Optional product description"
    )
    sku = models.CharField(
        max_length=64,
        blank=True,
        default='',
        help_text="Stock keeping unit"
    )
    category = models.CharField(
        max_length=100,
        blank=True,
        default='',
        db_index=True,
        help_text="Free-form category label"
    )
    image_url = models.CharField(
        max_length=500,
        blank=True,
        default='',
        help_text="URL of the product image"
    )
    customer_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text="Retail price paid by customers"
    )
    dealer_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text="Price paid by dealers"
    )
    stock_qty = models.PositiveIntegerField(
        default=0,
        help_text="Units currently in stock"
    )
    alert_level = models.CharField(
        max_length=10,
        choices=AlertLevel.choices,
        default=AlertLevel.CRITICAL,
        db_index=True,
        help_text="Restock alert level derived from stock_qty"
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
        help_text="Whether product is available for ordering"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['name', 'status'], name='product_name_status_idx'),
            models.Index(fields=['alert_level', 'stock_qty'], name='product_alert_stock_idx'),
        ]

    def __str__(self):
        return f"{self.name} (${self.customer_price} / dealer ${self.dealer_price})"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_qty == 0
