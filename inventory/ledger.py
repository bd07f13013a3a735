"""
Inventory Ledger - the only code path that changes Product.stock_qty.

Every write recomputes alert_level from the new quantity, so the two
fields never drift apart. Rows are locked with select_for_update() in
primary-key order before they are read, and all checks run before the
first write:

    reserve(items)  -> decrement stock, all-or-nothing
    release(items)  -> increment stock (order edit / delete)
    set_stock(...)  -> manual stock correction by an admin
"""
import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Tuple

from django.conf import settings
from django.db import transaction

from core.exceptions import InsufficientStockError, NotFoundError, OrderValidationError
from .models import Product

logger = logging.getLogger(__name__)

ItemList = Iterable[Tuple[int, int]]


def alert_level_for(stock_qty: int) -> str:
    """
    Map a stock quantity to its alert level.

    Thresholds come from settings.STOCK_ALERT_THRESHOLDS, checked in order:
    below 5 is CRITICAL, below 20 LOW, below 50 WARNING, otherwise NONE.
    """
    for limit, level in settings.STOCK_ALERT_THRESHOLDS:
        if stock_qty < limit:
            return level
    return Product.AlertLevel.NONE


def aggregate_items(items: ItemList) -> Dict[int, int]:
    """Merge (product_id, quantity) pairs, summing repeated products."""
    totals = OrderedDict()
    for product_id, quantity in items:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise OrderValidationError(
                f"Quantity for product {product_id} must be a positive integer"
            )
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


def _lock_products(product_ids) -> Dict[int, Product]:
    product_ids = list(product_ids)
    products = {
        p.pk: p
        for p in Product.objects.select_for_update().filter(pk__in=product_ids).order_by('pk')
    }
    missing = set(product_ids) - set(products)
    if missing:
        raise NotFoundError(f"Products not found: {sorted(missing)}")
    return products


def _write_stock(product: Product, stock_qty: int) -> None:
    product.stock_qty = stock_qty
    product.alert_level = alert_level_for(stock_qty)
    product.save(update_fields=['stock_qty', 'alert_level', 'updated_at'])


def reserve(items: ItemList) -> List[Product]:
    """
    Decrement stock for every line.

    Raises InsufficientStockError for the first line whose quantity exceeds
    the available stock; in that case no product is modified.
    """
    wanted = aggregate_items(items)
    if not wanted:
        return []

    with transaction.atomic():
        products = _lock_products(wanted.keys())

        for product_id, quantity in wanted.items():
            product = products[product_id]
            if product.stock_qty < quantity:
                logger.warning(
                    f"Reservation refused for {product.name}: "
                    f"requested {quantity}, available {product.stock_qty}"
                )
                raise InsufficientStockError(
                    product_id, quantity, product.stock_qty, product_name=product.name
                )

        for product_id, quantity in wanted.items():
            product = products[product_id]
            _write_stock(product, product.stock_qty - quantity)
            logger.debug(
                f"Reserved {quantity} of {product.name}, "
                f"remaining stock: {product.stock_qty} ({product.alert_level})"
            )

    return list(products.values())


def release(items: ItemList) -> List[Product]:
    """Return stock for every line."""
    returned = aggregate_items(items)
    if not returned:
        return []

    with transaction.atomic():
        products = _lock_products(returned.keys())
        for product_id, quantity in returned.items():
            product = products[product_id]
            _write_stock(product, product.stock_qty + quantity)
            logger.debug(
                f"Released {quantity} of {product.name}, "
                f"stock now: {product.stock_qty} ({product.alert_level})"
            )

    return list(products.values())


def set_stock(product_id: int, stock_qty: int) -> Product:
    """Overwrite a product's stock count (manual correction)."""
    if not isinstance(stock_qty, int) or stock_qty < 0:
        raise OrderValidationError("Stock quantity must be a non-negative integer")

    with transaction.atomic():
        product = _lock_products([product_id])[product_id]
        previous = product.stock_qty
        _write_stock(product, stock_qty)

    logger.info(f"Stock for {product.name} set from {previous} to {stock_qty}")
    return product


def schedule_stock_alerts(products: Iterable[Product]) -> None:
    """
    Queue a restock notice for products left at LOW or CRITICAL once the
    surrounding transaction commits.
    """
    product_ids = [
        p.pk for p in products
        if p.alert_level in (Product.AlertLevel.LOW, Product.AlertLevel.CRITICAL)
    ]
    if not product_ids:
        return

    def _queue():
        try:
            from .tasks import notify_stock_alert
            notify_stock_alert.delay(product_ids)
        except Exception as e:
            # Don't fail the order if task queuing fails
            logger.error(f"Failed to queue stock alert task: {e}")

    transaction.on_commit(_queue)
