"""
Cart Service Layer.

Every mutation locks the user's cart row first, so concurrent requests
from the same user are applied one after another.
"""
import logging

from django.db import transaction

from core.exceptions import NotFoundError, OrderValidationError
from inventory.models import Product
from .models import Cart, CartItem

logger = logging.getLogger(__name__)


def get_cart(user) -> Cart:
    cart, created = Cart.objects.get_or_create(user=user)
    if created:
        logger.debug(f"Created cart for user {user.pk}")
    return cart


def lock_cart(user) -> Cart:
    """Fetch (creating if needed) and row-lock the user's cart. Call inside atomic()."""
    get_cart(user)
    return Cart.objects.select_for_update().get(user=user)


def add_item(user, product_id: int, quantity: int = 1) -> Cart:
    """
    Add a product to the cart, or increase its quantity if already there.

    Raises:
        NotFoundError: product missing or inactive
        OrderValidationError: product out of stock or bad quantity
    """
    if not isinstance(quantity, int) or quantity < 1:
        raise OrderValidationError("Quantity must be a positive integer")

    try:
        product = Product.objects.get(pk=product_id, status=Product.Status.ACTIVE)
    except Product.DoesNotExist:
        raise NotFoundError("Product not found")

    if product.stock_qty <= 0:
        raise OrderValidationError("Out of Stock")

    with transaction.atomic():
        cart = lock_cart(user)
        item, created = CartItem.objects.get_or_create(
            cart=cart,
            product=product,
            defaults={'quantity': quantity}
        )
        if not created:
            item.quantity += quantity
            item.save(update_fields=['quantity'])
        cart.save(update_fields=['updated_at'])

    logger.info(f"User {user.pk} added {quantity}x {product.name} to cart")
    return cart


def change_quantity(user, product_id: int, action: str) -> Cart:
    """Increment ('inc') or decrement ('dec') a line; never drops below 1."""
    if action not in ('inc', 'dec'):
        raise OrderValidationError("type must be 'inc' or 'dec'")

    with transaction.atomic():
        cart = lock_cart(user)
        try:
            item = cart.items.get(product_id=product_id)
        except CartItem.DoesNotExist:
            raise NotFoundError("Product not in cart")

        if action == 'inc':
            item.quantity += 1
        else:
            item.quantity = max(1, item.quantity - 1)
        item.save(update_fields=['quantity'])
        cart.save(update_fields=['updated_at'])

    return cart


def remove_item(user, product_id: int) -> Cart:
    with transaction.atomic():
        cart = lock_cart(user)
        deleted, _ = cart.items.filter(product_id=product_id).delete()
        if deleted:
            cart.save(update_fields=['updated_at'])

    return cart


def clear_cart(cart: Cart) -> None:
    """Empty the cart, keeping the cart itself."""
    cart.items.all().delete()
    cart.save(update_fields=['updated_at'])
