"""
Order Service Layer - order lifecycle with consistent stock.

Every operation runs in one transaction and locks the rows it changes:

    create_order / convert_cart:
        1. Lock the cart (conversion only) and drop lines for inactive products
        2. Price the lines for the buyer's role
        3. Reserve stock for ALL lines (nothing is deducted if any line fails)
        4. Create the order in PENDING with a fresh order number
        5. Empty the cart (conversion only)

    accept_order:        PENDING -> PROCESSING
    reject_order:        PENDING | PROCESSING -> CANCELLED
    add_invoice_number:  PENDING | PROCESSING -> COMPLETED
    edit_order_items:    release old stock, reserve new stock; a failed
                         reservation leaves items and stock untouched
    delete_order:        release stock, then remove the order
"""
import logging
from typing import Dict, List, Optional, Tuple

from django.db import transaction, IntegrityError

from cart.services import lock_cart, clear_cart
from core.exceptions import (
    DuplicateInvoiceError,
    EmptyCartError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OrderValidationError,
)
from core.permissions import STAFF_ROLES, require_roles
from inventory import ledger
from inventory.models import Product
from .invoicing import next_order_number, validate_invoice_number
from .models import Order, OrderItem
from .pricing import compute_totals, pricing_for_user

logger = logging.getLogger(__name__)

Line = Tuple[Product, int]


def validate_order_items(items: List[Dict]) -> None:
    """
    Validate order items structure.

    Args:
        items: List of dicts with 'product_id' and 'quantity'

    Raises:
        OrderValidationError: If validation fails
    """
    if not items:
        raise OrderValidationError("Order must contain at least one item")

    seen_products = set()
    for idx, item in enumerate(items):
        if 'product_id' not in item:
            raise OrderValidationError(f"Item {idx}: missing 'product_id'")
        if 'quantity' not in item:
            raise OrderValidationError(f"Item {idx}: missing 'quantity'")

        product_id = item['product_id']
        quantity = item['quantity']

        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise OrderValidationError(f"Item {idx}: quantity must be a positive integer")

        if product_id in seen_products:
            raise OrderValidationError(f"Item {idx}: duplicate product_id {product_id}")
        seen_products.add(product_id)


def _resolve_lines(items: List[Dict], also_allowed=()) -> List[Line]:
    """
    Turn validated item dicts into (product, quantity) lines.

    Products must exist and be ACTIVE, except ids in also_allowed (products
    already on the order being edited), which only need to exist.
    """
    product_ids = [item['product_id'] for item in items]
    products = {p.pk: p for p in Product.objects.filter(pk__in=product_ids)}

    unavailable = {
        pid for pid in product_ids
        if pid not in products
        or (not products[pid].is_active and pid not in also_allowed)
    }
    if unavailable:
        raise NotFoundError(f"Products not found or inactive: {sorted(unavailable)}")

    return [(products[item['product_id']], item['quantity']) for item in items]


def _load_order(order_id, lock: bool = False) -> Order:
    if lock:
        queryset = Order.objects.select_for_update()
    else:
        queryset = Order.objects.select_related('user')
    try:
        return queryset.get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFoundError(f"Order {order_id} not found")


def _check_access(user, order: Order) -> None:
    """Staff see every order; everyone else only their own."""
    if user.role in STAFF_ROLES:
        return
    if order.user_id != user.pk:
        raise NotFoundError(f"Order {order.pk} not found")


def get_order(user, order_id) -> Order:
    order = _load_order(order_id)
    _check_access(user, order)
    return order


def _place_order(user, lines: List[Line]) -> Order:
    """Price, reserve and persist. Caller provides the transaction."""
    strategy = pricing_for_user(user)
    totals = compute_totals(lines, strategy)

    touched = ledger.reserve([(product.pk, quantity) for product, quantity in lines])

    order = Order.objects.create(
        order_number=next_order_number(user.role),
        user=user,
        customer_name=user.get_full_name() or user.username,
        customer_phone=getattr(user, 'phone', ''),
        status=Order.Status.PENDING,
        payment_status=Order.PaymentStatus.PENDING,
        dealer_price_used=totals.dealer_price_used,
        total_amount=totals.total_amount,
        final_amount=totals.final_amount,
    )
    OrderItem.objects.bulk_create([
        OrderItem(
            order=order,
            product=product,
            quantity=quantity,
            unit_price=strategy.unit_price_for(product),
        )
        for product, quantity in lines
    ])

    ledger.schedule_stock_alerts(touched)

    logger.info(
        f"Order {order.order_number} placed by user {user.pk}: "
        f"{len(lines)} items, total ${order.total_amount}, payable ${order.final_amount}"
    )
    return order


def create_order(user, items: List[Dict]) -> Order:
    """
    Place an order directly from a list of {'product_id', 'quantity'}.

    Raises:
        OrderValidationError: malformed item list
        NotFoundError: unknown or inactive product
        InsufficientStockError: any line exceeds stock (nothing reserved)
    """
    validate_order_items(items)
    lines = _resolve_lines(items)

    with transaction.atomic():
        return _place_order(user, lines)


def convert_cart(user) -> Order:
    """
    Turn the user's cart into a PENDING order and empty the cart.

    Lines whose product has been deactivated are dropped.

    Raises:
        EmptyCartError: no usable lines in the cart
        InsufficientStockError: any line exceeds stock (cart left as is)
    """
    with transaction.atomic():
        cart = lock_cart(user)
        cart_items = list(cart.items.select_related('product'))
        if not cart_items:
            raise EmptyCartError()

        lines = [(ci.product, ci.quantity) for ci in cart_items if ci.product.is_active]
        if not lines:
            raise EmptyCartError("Cart has no available products")

        dropped = len(cart_items) - len(lines)
        if dropped:
            logger.info(f"Dropped {dropped} unavailable products from cart of user {user.pk}")

        order = _place_order(user, lines)
        clear_cart(cart)

    return order


def accept_order(user, order_id) -> Order:
    require_roles(user, STAFF_ROLES)

    with transaction.atomic():
        order = _load_order(order_id, lock=True)
        if not order.can_transition('accept'):
            raise InvalidTransitionError(
                f"Only pending orders can be accepted (order is {order.status})"
            )
        order.status = Order.Status.PROCESSING
        order.save(update_fields=['status', 'updated_at'])

    logger.info(f"Order {order.order_number} accepted by user {user.pk}")
    return order


def reject_order(user, order_id) -> Order:
    require_roles(user, STAFF_ROLES)

    with transaction.atomic():
        order = _load_order(order_id, lock=True)
        if order.status == Order.Status.COMPLETED:
            raise InvalidTransitionError("Cannot reject a completed order")
        if not order.can_transition('reject'):
            raise InvalidTransitionError(f"Order is already {order.status}")
        order.status = Order.Status.CANCELLED
        order.save(update_fields=['status', 'updated_at'])

    logger.info(f"Order {order.order_number} rejected by user {user.pk}")
    return order


def edit_order_items(user, order_id, items: List[Dict]) -> Order:
    """
    Replace an order's items, moving stock accordingly.

    Old stock is released and the new lines reserved in the same
    transaction; if the reservation fails everything rolls back, so the
    order keeps its old items and stock is unchanged.
    """
    validate_order_items(items)

    with transaction.atomic():
        order = _load_order(order_id, lock=True)
        _check_access(user, order)
        if not order.is_editable:
            raise InvalidTransitionError(
                f"Order {order.order_number} can no longer be edited ({order.status})"
            )

        old_pairs = order.item_pairs()
        lines = _resolve_lines(items, also_allowed={pid for pid, _ in old_pairs})

        ledger.release(old_pairs)

        strategy = pricing_for_user(order.user)
        totals = compute_totals(lines, strategy)
        touched = ledger.reserve([(product.pk, quantity) for product, quantity in lines])

        order.items.all().delete()
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=product,
                quantity=quantity,
                unit_price=strategy.unit_price_for(product),
            )
            for product, quantity in lines
        ])
        order.total_amount = totals.total_amount
        order.final_amount = totals.final_amount
        order.dealer_price_used = totals.dealer_price_used
        order.save(update_fields=['total_amount', 'final_amount', 'dealer_price_used', 'updated_at'])

        ledger.schedule_stock_alerts(touched)

    logger.info(
        f"Order {order.order_number} edited by user {user.pk}: "
        f"{len(lines)} items, payable ${order.final_amount}"
    )
    return order


def add_invoice_number(user, order_id, invoice_number: Optional[str]) -> Order:
    """
    Assign the operator's invoice number and complete the order.

    This is the only way an order reaches COMPLETED.
    """
    require_roles(user, STAFF_ROLES)

    with transaction.atomic():
        order = _load_order(order_id, lock=True)
        if not order.can_transition('invoice'):
            raise InvalidTransitionError(
                f"Cannot invoice an order that is {order.status}"
            )

        order.invoice_number = validate_invoice_number(invoice_number, order.pk)
        order.status = Order.Status.COMPLETED
        try:
            with transaction.atomic():
                order.save(update_fields=['invoice_number', 'status', 'updated_at'])
        except IntegrityError:
            logger.warning(f"Invoice number {order.invoice_number} taken concurrently")
            raise DuplicateInvoiceError(
                f"Invoice number {order.invoice_number} already exists"
            )

    logger.info(
        f"Order {order.order_number} completed with invoice {order.invoice_number}"
    )
    return order


def delete_order(user, order_id) -> None:
    """
    Restore the order's stock, then delete it.

    Admins and managers may delete in any state; owners only while PENDING.
    """
    with transaction.atomic():
        order = _load_order(order_id, lock=True)
        _check_access(user, order)
        if user.role not in STAFF_ROLES and order.status != Order.Status.PENDING:
            raise ForbiddenError("Only pending orders can be deleted")

        ledger.release(order.item_pairs())
        order_number = order.order_number
        order.delete()

    logger.info(f"Order {order_number} deleted by user {user.pk}, stock restored")
