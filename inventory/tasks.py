"""
Celery tasks for inventory.

Tasks:
    - notify_stock_alert: restock notice for products at LOW or CRITICAL
"""
import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(ConnectionError,),
    retry_backoff=True
)
def notify_stock_alert(self, product_ids):
    """
    Log a restock notice for every product still at LOW or CRITICAL.

    Stock may have been replenished between queueing and running, so the
    level is re-read here.

    Returns:
        Dict with the products that were reported
    """
    from inventory.models import Product

    products = Product.objects.filter(
        pk__in=product_ids,
        alert_level__in=[Product.AlertLevel.LOW, Product.AlertLevel.CRITICAL],
    ).order_by('stock_qty')

    reported = []
    for product in products:
        logger.warning(
            f"[RESTOCK] {product.name} (sku {product.sku or '-'}) is "
            f"{product.alert_level}: {product.stock_qty} units left"
        )
        reported.append({
            'product_id': product.pk,
            'alert_level': product.alert_level,
            'stock_qty': product.stock_qty,
        })

    if not reported:
        logger.info(f"No restock needed for products {product_ids}")

    return {'status': 'success', 'reported': reported}
