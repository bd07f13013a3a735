"""
Order Models - Order and OrderItem entities with status tracking, the
order number counter, and the admin-editable Bill.

Order Status Flow:
    PENDING -> PROCESSING (accepted by admin/manager)
    PENDING | PROCESSING -> COMPLETED (invoice number assigned)
    PENDING | PROCESSING -> CANCELLED (rejected)

COMPLETED and CANCELLED are terminal.
"""
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.core.validators import MinValueValidator

from inventory.models import Product


class Order(models.Model):
    """
    Order entity placed by a user, from the cart or directly.

    Items are a snapshot taken at creation; stock for them stays reserved
    until the order is deleted.
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PROCESSING = 'PROCESSING', 'Processing'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'

    class PaymentStatus(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PAID = 'PAID', 'Paid'

    # action -> (allowed source states, target state)
    TRANSITIONS = {
        'accept': ((Status.PENDING,), Status.PROCESSING),
        'reject': ((Status.PENDING, Status.PROCESSING), Status.CANCELLED),
        'invoice': ((Status.PENDING, Status.PROCESSING), Status.COMPLETED),
    }
    EDITABLE_STATUSES = (Status.PENDING, Status.PROCESSING)

    order_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Human-readable order number, e.g. CO12 or DO3"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='orders',
        help_text="User who placed the order"
    )
    customer_name = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Name of the buyer at the time of ordering"
    )
    customer_phone = models.CharField(
        max_length=20,
        blank=True,
        default='',
        help_text="Phone of the buyer at the time of ordering"
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Current order status"
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        help_text="Payment state"
    )
    invoice_number = models.CharField(
        max_length=64,
        blank=True,
        default='',
        db_index=True,
        help_text="Operator-assigned invoice number; set when the order completes"
    )
    dealer_price_used = models.BooleanField(
        default=False,
        help_text="Whether the order was priced at dealer prices"
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Total at retail prices"
    )
    final_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Amount payable after dealer pricing"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order'
        verbose_name_plural = 'Orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='order_user_status_idx'),
            models.Index(fields=['status', 'created_at'], name='order_status_created_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['invoice_number'],
                condition=~Q(invoice_number=''),
                name='unique_nonempty_invoice_number'
            )
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.COMPLETED, self.Status.CANCELLED)

    @property
    def is_editable(self) -> bool:
        return self.status in self.EDITABLE_STATUSES and not self.invoice_number

    def can_transition(self, action: str) -> bool:
        sources, _target = self.TRANSITIONS[action]
        return self.status in sources

    def item_pairs(self):
        """(product_id, quantity) for every line, as the ledger expects."""
        return [(item.product_id, item.quantity) for item in self.items.all()]


class OrderItem(models.Model):
    """
    OrderItem entity representing a product in an order.

    Stores the unit price at time of order to preserve historical pricing.
    """
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent order"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,  # Prevent deletion of products with orders
        related_name='order_items',
        help_text="Ordered product"
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity ordered"
    )
    unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price per unit charged at time of order"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Order Item'
        verbose_name_plural = 'Order Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.product.name} @ ${self.unit_price}"

    @property
    def subtotal(self) -> Decimal:
        """Calculate item subtotal."""
        return self.quantity * self.unit_price


class OrderSequence(models.Model):
    """Per-prefix counter used to draw sequential order numbers."""
    prefix = models.CharField(max_length=8, unique=True)
    last_value = models.PositiveBigIntegerField(default=0)

    class Meta:
        verbose_name = 'Order Sequence'
        verbose_name_plural = 'Order Sequences'

    def __str__(self):
        return f"{self.prefix}{self.last_value}"


class Bill(models.Model):
    """
    Bill for an order, edited by admins independently of the order.

    Figures here may be overridden freely; the order is never touched.
    """
    order = models.OneToOneField(
        Order,
        on_delete=models.CASCADE,
        related_name='bill',
        help_text="Order this bill belongs to"
    )
    customer_name = models.CharField(max_length=200, blank=True, default='')
    customer_phone = models.CharField(max_length=20, blank=True, default='')
    customer_address = models.TextField(blank=True, default='')
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    shipping_charge = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Bill'
        verbose_name_plural = 'Bills'
        ordering = ['-created_at']

    def __str__(self):
        return f"Bill for {self.order.order_number}: ${self.total_amount}"


class BillItem(models.Model):
    bill = models.ForeignKey(
        Bill,
        on_delete=models.CASCADE,
        related_name='items'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bill_items'
    )
    description = models.CharField(max_length=200, blank=True, default='')
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price = models.DecimalField(max_digits=10, decimal_places=2)
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        verbose_name = 'Bill Item'
        verbose_name_plural = 'Bill Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.description} = ${self.amount}"
