"""
Order and invoice numbering.

Order numbers are generated: a role prefix plus the next value of an
atomic per-prefix counter (CO1, CO2, ..., DO1, ...).

Invoice numbers are supplied by the operator; this module only checks
that they are non-empty and not already used by another order.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F

from core.exceptions import DuplicateInvoiceError, OrderValidationError
from .models import Order, OrderSequence

logger = logging.getLogger(__name__)


def order_prefix_for(role: str) -> str:
    return settings.ORDER_NUMBER_PREFIXES.get(role, settings.DEFAULT_ORDER_NUMBER_PREFIX)


def next_order_number(role: str) -> str:
    """Draw the next order number for a role; safe under concurrency."""
    prefix = order_prefix_for(role)
    with transaction.atomic():
        OrderSequence.objects.get_or_create(prefix=prefix)
        OrderSequence.objects.filter(prefix=prefix).update(last_value=F('last_value') + 1)
        value = OrderSequence.objects.select_for_update().get(prefix=prefix).last_value
    return f"{prefix}{value}"


def validate_invoice_number(candidate, order_id=None) -> str:
    """
    Return the trimmed invoice number if it can be assigned.

    Raises:
        OrderValidationError: empty or whitespace-only
        DuplicateInvoiceError: already held by another order
    """
    invoice_number = (candidate or '').strip()
    if not invoice_number:
        raise OrderValidationError("Invoice number required")

    taken = Order.objects.filter(invoice_number=invoice_number)
    if order_id is not None:
        taken = taken.exclude(pk=order_id)
    if taken.exists():
        logger.warning(f"Invoice number {invoice_number} already in use")
        raise DuplicateInvoiceError(f"Invoice number {invoice_number} already exists")

    return invoice_number
