"""
Tests for cart operations.
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from cart import services
from cart.models import Cart, CartItem
from core.exceptions import NotFoundError, OrderValidationError
from inventory import ledger
from inventory.models import Product

User = get_user_model()


class CartServiceTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('buyer', password='secret-pass', role='CUSTOMER')
        product = Product.objects.create(
            name='Kettle', customer_price=Decimal('30.00'), dealer_price=Decimal('24.00')
        )
        self.product = ledger.set_stock(product.pk, 10)

    def test_get_cart_creates_once(self):
        cart = services.get_cart(self.user)
        self.assertEqual(services.get_cart(self.user).pk, cart.pk)
        self.assertEqual(Cart.objects.filter(user=self.user).count(), 1)

    def test_add_item_then_add_again_increments(self):
        services.add_item(self.user, self.product.pk, 2)
        cart = services.add_item(self.user, self.product.pk, 3)

        item = cart.items.get()
        self.assertEqual(item.quantity, 5)
        self.assertEqual(cart.total_items, 1)

    def test_add_item_does_not_touch_stock(self):
        services.add_item(self.user, self.product.pk, 4)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 10)

    def test_add_out_of_stock_product(self):
        ledger.set_stock(self.product.pk, 0)
        with self.assertRaises(OrderValidationError) as context:
            services.add_item(self.user, self.product.pk)
        self.assertIn('Out of Stock', str(context.exception))

    def test_add_inactive_or_missing_product(self):
        Product.objects.filter(pk=self.product.pk).update(status=Product.Status.INACTIVE)

        with self.assertRaises(NotFoundError):
            services.add_item(self.user, self.product.pk)
        with self.assertRaises(NotFoundError):
            services.add_item(self.user, 99999)

    def test_add_rejects_bad_quantity(self):
        with self.assertRaises(OrderValidationError):
            services.add_item(self.user, self.product.pk, 0)

    def test_change_quantity(self):
        services.add_item(self.user, self.product.pk, 2)

        cart = services.change_quantity(self.user, self.product.pk, 'inc')
        self.assertEqual(cart.items.get().quantity, 3)

        for _ in range(5):
            cart = services.change_quantity(self.user, self.product.pk, 'dec')
        self.assertEqual(cart.items.get().quantity, 1)

    def test_change_quantity_of_missing_line(self):
        with self.assertRaises(NotFoundError):
            services.change_quantity(self.user, self.product.pk, 'inc')
        with self.assertRaises(OrderValidationError):
            services.change_quantity(self.user, self.product.pk, 'double')

    def test_remove_item(self):
        services.add_item(self.user, self.product.pk)
        cart = services.remove_item(self.user, self.product.pk)
        self.assertEqual(cart.total_items, 0)

        # Removing again is harmless
        services.remove_item(self.user, self.product.pk)

    def test_clear_cart_keeps_cart(self):
        cart = services.add_item(self.user, self.product.pk)
        services.clear_cart(cart)

        self.assertTrue(Cart.objects.filter(pk=cart.pk).exists())
        self.assertFalse(CartItem.objects.filter(cart=cart).exists())

    def test_deleted_product_leaves_cart(self):
        cart = services.add_item(self.user, self.product.pk)
        self.product.delete()
        self.assertEqual(cart.total_items, 0)


@override_settings(RATE_LIMIT_ENABLED=False)
class CartAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.dealer = User.objects.create_user('dealer', password='secret-pass', role='DEALER')
        self.product = Product.objects.create(
            name='Toaster', customer_price=Decimal('40.00'), dealer_price=Decimal('32.00')
        )
        ledger.set_stock(self.product.pk, 1)
        self.client.force_authenticate(self.dealer)

    def test_empty_cart(self):
        response = self.client.get('/api/cart/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'], [])
        self.assertEqual(response.data['total_items'], 0)

    def test_add_and_view_with_dealer_price(self):
        response = self.client.post(
            '/api/cart/items/', {'product_id': self.product.pk, 'quantity': 2}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        line = response.data['items'][0]
        self.assertEqual(line['quantity'], 2)
        self.assertEqual(line['unit_price'], '32.00')
        self.assertEqual(line['subtotal'], '64.00')
        # Only one unit in stock
        self.assertFalse(line['in_stock'])

    def test_update_and_remove(self):
        self.client.post('/api/cart/items/', {'product_id': self.product.pk}, format='json')

        response = self.client.patch(
            f'/api/cart/items/{self.product.pk}/', {'type': 'inc'}, format='json'
        )
        self.assertEqual(response.data['items'][0]['quantity'], 2)

        response = self.client.patch(
            f'/api/cart/items/{self.product.pk}/', {'type': 'sideways'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(f'/api/cart/items/{self.product.pk}/')
        self.assertEqual(response.data['total_items'], 0)

    def test_add_unknown_product(self):
        response = self.client.post('/api/cart/items/', {'product_id': 4242}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Not Found')
