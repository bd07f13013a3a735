"""
Bills - admin-editable invoices derived from orders.

A bill starts as a draft computed from the order. Once saved it is stored
separately and may carry any figures the admin enters; saving a bill
never changes the order.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction

from core.exceptions import NotFoundError
from core.permissions import STAFF_ROLES, require_roles
from inventory.models import Product
from .models import Bill, BillItem, Order

logger = logging.getLogger(__name__)


def _order_for_bill(order_id) -> Order:
    try:
        return Order.objects.select_related('user').prefetch_related('items__product').get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFoundError(f"Order {order_id} not found")


def draft_bill(order: Order) -> Dict:
    """Bill figures computed from the order, not persisted."""
    items = [
        {
            'product_id': item.product_id,
            'description': item.product.name,
            'quantity': item.quantity,
            'price': item.unit_price,
            'amount': item.subtotal,
        }
        for item in order.items.all()
    ]
    subtotal = sum((line['amount'] for line in items), Decimal('0.00'))
    return {
        'order_id': order.pk,
        'order_number': order.order_number,
        'customer_name': order.customer_name,
        'customer_phone': order.customer_phone,
        'customer_address': getattr(order.user, 'address', ''),
        'items': items,
        'subtotal': subtotal,
        'discount': Decimal('0.00'),
        'shipping_charge': Decimal('0.00'),
        'total_amount': subtotal,
        'saved': False,
    }


def get_bill(user, order_id):
    """Return the saved Bill for an order, or a draft dict if none exists."""
    require_roles(user, STAFF_ROLES)
    order = _order_for_bill(order_id)
    try:
        return order.bill
    except Bill.DoesNotExist:
        return draft_bill(order)


def _fill_amounts(items: List[Dict]) -> List[Dict]:
    filled = []
    for line in items:
        line = dict(line)
        if line.get('amount') is None:
            line['amount'] = line['price'] * line['quantity']
        filled.append(line)
    return filled


def save_bill(user, order_id, data: Dict) -> Bill:
    """
    Create or replace the bill for an order.

    data holds validated fields: items (product_id, description, quantity,
    price, optional amount), customer fields, optional subtotal, discount,
    shipping_charge and total_amount. Missing figures are computed:
    amount = quantity * price, subtotal = sum of amounts,
    total = subtotal - discount + shipping.
    """
    require_roles(user, STAFF_ROLES)
    order = _order_for_bill(order_id)

    draft = draft_bill(order)
    items = _fill_amounts(data.get('items') or [])
    discount = data.get('discount') or Decimal('0.00')
    shipping = data.get('shipping_charge') or Decimal('0.00')
    subtotal = data.get('subtotal')
    if subtotal is None:
        subtotal = sum((line['amount'] for line in items), Decimal('0.00'))
    total = data.get('total_amount')
    if total is None:
        total = subtotal - discount + shipping

    product_ids = {line.get('product_id') for line in items if line.get('product_id')}
    products = Product.objects.in_bulk(product_ids)

    with transaction.atomic():
        bill, created = Bill.objects.select_for_update().get_or_create(order=order)
        bill.customer_name = data.get('customer_name', draft['customer_name'])
        bill.customer_phone = data.get('customer_phone', draft['customer_phone'])
        bill.customer_address = data.get('customer_address', draft['customer_address'])
        bill.subtotal = subtotal
        bill.discount = discount
        bill.shipping_charge = shipping
        bill.total_amount = total
        bill.save()

        bill.items.all().delete()
        BillItem.objects.bulk_create([
            BillItem(
                bill=bill,
                product=products.get(line.get('product_id')),
                description=line.get('description') or getattr(
                    products.get(line.get('product_id')), 'name', ''
                ),
                quantity=line['quantity'],
                price=line['price'],
                amount=line['amount'],
            )
            for line in items
        ])

    logger.info(
        f"Bill for order {order.order_number} {'created' if created else 'updated'} "
        f"by user {user.pk}: total ${total}"
    )
    return bill
