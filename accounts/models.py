"""
Account Models - users with an order-desk role.

Roles:
    - ADMIN: full access, manages users
    - MANAGER: approves, invoices and edits orders
    - DEALER: buys at dealer price, optional margin discount
    - CUSTOMER: buys at retail price
"""
from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


class User(AbstractUser):
    """
    Application user. Role decides which price the user pays and which
    order operations the user may perform.
    """

    class Role(models.TextChoices):
        ADMIN = 'ADMIN', 'Admin'
        MANAGER = 'MANAGER', 'Manager'
        DEALER = 'DEALER', 'Dealer'
        CUSTOMER = 'CUSTOMER', 'Customer'

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.CUSTOMER,
        db_index=True,
        help_text="Role deciding pricing and permissions"
    )
    phone = models.CharField(
        max_length=20,
        blank=True,
        default='',
        help_text="Contact phone number"
    )
    address = models.TextField(
        blank=True,
        default='',
        help_text="Billing / delivery address"
    )
    gst_number = models.CharField(
        max_length=20,
        blank=True,
        default='',
        help_text="Tax registration number (dealers)"
    )
    margin_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
        help_text="Dealer-specific discount applied on top of dealer price"
    )

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-date_joined']

    def __str__(self):
        return f"{self.get_full_name() or self.username} ({self.role})"

    @property
    def is_admin_or_manager(self) -> bool:
        return self.role in (self.Role.ADMIN, self.Role.MANAGER)

    @property
    def is_dealer(self) -> bool:
        return self.role == self.Role.DEALER
