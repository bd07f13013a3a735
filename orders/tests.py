"""
Tests for order lifecycle and stock consistency.

Test Cases:
1. Cart conversion reserves stock and empties the cart
2. Accept / reject / invoice transitions, terminal states
3. Failed edit leaves items and stock untouched
4. Delete restores stock
5. Retail vs dealer pricing
6. Order and invoice numbering
7. Bills
8. API endpoints
9. Concurrent orders never oversell
"""
import threading
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import connections
from django.test import TestCase, TransactionTestCase, override_settings, skipUnlessDBFeature
from rest_framework import status
from rest_framework.test import APIClient

from cart import services as cart_services
from core.exceptions import (
    DuplicateInvoiceError,
    EmptyCartError,
    ForbiddenError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    OrderValidationError,
)
from inventory import ledger
from inventory.models import Product
from orders import billing, services
from orders.invoicing import next_order_number, validate_invoice_number
from orders.models import Bill, Order, OrderItem
from orders.pricing import DealerPricing, RetailPricing, compute_totals, resolve_price

User = get_user_model()


class OrderFixtureMixin:
    """Users of every role and a stocked product."""

    def make_product(self, name, stock_qty, customer_price='10.00', dealer_price='8.00'):
        product = Product.objects.create(
            name=name,
            customer_price=Decimal(customer_price),
            dealer_price=Decimal(dealer_price),
        )
        return ledger.set_stock(product.pk, stock_qty)

    def deactivate(self, product):
        Product.objects.filter(pk=product.pk).update(status=Product.Status.INACTIVE)

    def make_users(self):
        self.admin = User.objects.create_user('admin', password='secret-pass', role='ADMIN')
        self.manager = User.objects.create_user('manager', password='secret-pass', role='MANAGER')
        self.customer = User.objects.create_user('customer', password='secret-pass', role='CUSTOMER')
        self.other = User.objects.create_user('other', password='secret-pass', role='CUSTOMER')
        self.dealer = User.objects.create_user('dealer', password='secret-pass', role='DEALER')


class OrderLifecycleTestCase(OrderFixtureMixin, TestCase):
    """The core lifecycle: convert, accept, invoice, edit, delete."""

    def setUp(self):
        self.make_users()
        self.product = self.make_product('Lamp', stock_qty=3)

    def place_from_cart(self, quantity=2):
        cart_services.add_item(self.customer, self.product.pk, quantity)
        return services.convert_cart(self.customer)

    def test_convert_cart_reserves_stock(self):
        """
        Given: Lamp has 3 units, cart holds 2
        When: Converting the cart
        Then: PENDING order, 1 unit left at CRITICAL, cart emptied but kept
        """
        order = self.place_from_cart()

        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.payment_status, Order.PaymentStatus.PENDING)
        self.assertEqual(order.item_pairs(), [(self.product.pk, 2)])
        self.assertEqual(order.total_amount, Decimal('20.00'))

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 1)
        self.assertEqual(self.product.alert_level, Product.AlertLevel.CRITICAL)

        cart = cart_services.get_cart(self.customer)
        self.assertEqual(cart.total_items, 0)

    def test_convert_empty_cart(self):
        with self.assertRaises(EmptyCartError):
            services.convert_cart(self.customer)
        self.assertFalse(Order.objects.exists())

    def test_convert_drops_inactive_products(self):
        spare = self.make_product('Bulb', stock_qty=10)
        cart_services.add_item(self.customer, self.product.pk, 1)
        cart_services.add_item(self.customer, spare.pk, 1)
        self.deactivate(spare)

        order = services.convert_cart(self.customer)
        self.assertEqual(order.item_pairs(), [(self.product.pk, 1)])

        spare.refresh_from_db()
        self.assertEqual(spare.stock_qty, 10)

    def test_convert_cart_of_only_unavailable_products(self):
        cart_services.add_item(self.customer, self.product.pk, 1)
        self.deactivate(self.product)

        with self.assertRaises(EmptyCartError):
            services.convert_cart(self.customer)

        # The cart is left for the user to clean up
        self.assertEqual(cart_services.get_cart(self.customer).total_items, 1)

    def test_convert_insufficient_stock_keeps_cart(self):
        cart_services.add_item(self.customer, self.product.pk, 5)

        with self.assertRaises(InsufficientStockError):
            services.convert_cart(self.customer)

        self.assertFalse(Order.objects.exists())
        self.assertEqual(cart_services.get_cart(self.customer).total_items, 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 3)

    def test_accept_then_invoice_then_accept_fails(self):
        order = self.place_from_cart()

        order = services.accept_order(self.manager, order.pk)
        self.assertEqual(order.status, Order.Status.PROCESSING)

        order = services.add_invoice_number(self.admin, order.pk, 'INV-1')
        self.assertEqual(order.status, Order.Status.COMPLETED)
        self.assertEqual(order.invoice_number, 'INV-1')

        with self.assertRaises(InvalidTransitionError):
            services.accept_order(self.manager, order.pk)

    def test_invoice_pending_order_completes_it(self):
        order = self.place_from_cart()
        order = services.add_invoice_number(self.manager, order.pk, '  INV-7  ')

        self.assertEqual(order.status, Order.Status.COMPLETED)
        self.assertEqual(order.invoice_number, 'INV-7')

    def test_failed_edit_leaves_order_and_stock(self):
        """
        Given: PENDING order for 2 lamps, 1 lamp left in stock
        When: Editing the order to 10 lamps (only 3 available after release)
        Then: InsufficientStockError, items unchanged, stock still 1
        """
        order = self.place_from_cart()

        with self.assertRaises(InsufficientStockError) as context:
            services.edit_order_items(
                self.customer, order.pk, [{'product_id': self.product.pk, 'quantity': 10}]
            )
        self.assertEqual(context.exception.available, 3)

        order.refresh_from_db()
        self.assertEqual(order.item_pairs(), [(self.product.pk, 2)])
        self.assertEqual(order.total_amount, Decimal('20.00'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 1)

    def test_edit_moves_stock(self):
        other_product = self.make_product('Shade', stock_qty=30, customer_price='5.00')
        order = self.place_from_cart()

        order = services.edit_order_items(self.customer, order.pk, [
            {'product_id': self.product.pk, 'quantity': 3},
            {'product_id': other_product.pk, 'quantity': 4},
        ])

        self.assertEqual(
            sorted(order.item_pairs()),
            sorted([(self.product.pk, 3), (other_product.pk, 4)])
        )
        self.assertEqual(order.total_amount, Decimal('50.00'))
        self.product.refresh_from_db()
        other_product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 0)
        self.assertEqual(other_product.stock_qty, 26)

    def test_edit_processing_order_allowed(self):
        order = self.place_from_cart()
        services.accept_order(self.manager, order.pk)

        order = services.edit_order_items(
            self.customer, order.pk, [{'product_id': self.product.pk, 'quantity': 1}]
        )
        self.assertEqual(order.item_pairs(), [(self.product.pk, 1)])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 2)

    def test_edit_keeps_deactivated_product_already_on_order(self):
        order = self.place_from_cart()
        self.deactivate(self.product)

        order = services.edit_order_items(
            self.customer, order.pk, [{'product_id': self.product.pk, 'quantity': 1}]
        )
        self.assertEqual(order.item_pairs(), [(self.product.pk, 1)])

    def test_edit_cannot_add_inactive_product(self):
        hidden = self.make_product('Hidden', stock_qty=10)
        self.deactivate(hidden)
        order = self.place_from_cart()

        with self.assertRaises(NotFoundError):
            services.edit_order_items(
                self.customer, order.pk, [{'product_id': hidden.pk, 'quantity': 1}]
            )

    def test_delete_restores_stock(self):
        order = self.place_from_cart()

        services.delete_order(self.customer, order.pk)

        self.assertFalse(Order.objects.filter(pk=order.pk).exists())
        self.assertFalse(OrderItem.objects.filter(order_id=order.pk).exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 3)
        self.assertEqual(self.product.alert_level, Product.AlertLevel.CRITICAL)

    def test_staff_delete_completed_order_restores_stock(self):
        order = self.place_from_cart()
        services.add_invoice_number(self.admin, order.pk, 'INV-9')

        services.delete_order(self.admin, order.pk)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 3)

    def test_owner_cannot_delete_after_acceptance(self):
        order = self.place_from_cart()
        services.accept_order(self.manager, order.pk)

        with self.assertRaises(ForbiddenError):
            services.delete_order(self.customer, order.pk)
        self.assertTrue(Order.objects.filter(pk=order.pk).exists())

    def test_reject_keeps_reservation(self):
        order = self.place_from_cart()

        order = services.reject_order(self.manager, order.pk)

        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 1)

    def test_reject_processing_order(self):
        order = self.place_from_cart()
        services.accept_order(self.manager, order.pk)

        order = services.reject_order(self.admin, order.pk)
        self.assertEqual(order.status, Order.Status.CANCELLED)


class TerminalStateTestCase(OrderFixtureMixin, TestCase):
    """COMPLETED and CANCELLED orders accept no further change."""

    def setUp(self):
        self.make_users()
        self.product = self.make_product('Fan', stock_qty=20)
        items = [{'product_id': self.product.pk, 'quantity': 1}]

        self.completed = services.create_order(self.customer, items)
        services.add_invoice_number(self.admin, self.completed.pk, 'INV-100')

        self.cancelled = services.create_order(self.customer, items)
        services.reject_order(self.admin, self.cancelled.pk)

    def test_reject_completed_order(self):
        with self.assertRaises(InvalidTransitionError) as context:
            services.reject_order(self.admin, self.completed.pk)
        self.assertIn('completed', str(context.exception))

    def test_reject_cancelled_order(self):
        with self.assertRaises(InvalidTransitionError):
            services.reject_order(self.admin, self.cancelled.pk)

    def test_accept_terminal_orders(self):
        for order in (self.completed, self.cancelled):
            with self.subTest(status=order.status):
                with self.assertRaises(InvalidTransitionError):
                    services.accept_order(self.admin, order.pk)

    def test_edit_terminal_orders(self):
        items = [{'product_id': self.product.pk, 'quantity': 2}]
        for order in (self.completed, self.cancelled):
            with self.subTest(status=order.status):
                with self.assertRaises(InvalidTransitionError):
                    services.edit_order_items(self.customer, order.pk, items)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 18)

    def test_invoice_terminal_orders(self):
        for order in (self.completed, self.cancelled):
            with self.subTest(status=order.status):
                with self.assertRaises(InvalidTransitionError):
                    services.add_invoice_number(self.admin, order.pk, 'INV-NEW')

    def test_model_helpers(self):
        self.completed.refresh_from_db()
        self.assertTrue(self.completed.is_terminal)
        self.assertFalse(self.completed.is_editable)
        self.assertFalse(self.completed.can_transition('reject'))


class OrderValidationTestCase(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_users()
        self.product = self.make_product('Chair', stock_qty=10)

    def test_empty_items(self):
        with self.assertRaises(OrderValidationError) as context:
            services.create_order(self.customer, [])
        self.assertIn('at least one item', str(context.exception))

    def test_invalid_quantity(self):
        with self.assertRaises(OrderValidationError):
            services.create_order(self.customer, [{'product_id': self.product.pk, 'quantity': 0}])

    def test_missing_keys(self):
        with self.assertRaises(OrderValidationError):
            services.create_order(self.customer, [{'product_id': self.product.pk}])

    def test_duplicate_products(self):
        items = [
            {'product_id': self.product.pk, 'quantity': 5},
            {'product_id': self.product.pk, 'quantity': 3},
        ]
        with self.assertRaises(OrderValidationError) as context:
            services.create_order(self.customer, items)
        self.assertIn('duplicate', str(context.exception).lower())

    def test_unknown_product(self):
        with self.assertRaises(NotFoundError):
            services.create_order(self.customer, [{'product_id': 99999, 'quantity': 1}])
        self.assertFalse(Order.objects.exists())

    def test_insufficient_stock_creates_nothing(self):
        second = self.make_product('Desk', stock_qty=1)
        items = [
            {'product_id': self.product.pk, 'quantity': 5},
            {'product_id': second.pk, 'quantity': 2},
        ]
        with self.assertRaises(InsufficientStockError):
            services.create_order(self.customer, items)

        self.assertFalse(Order.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 10)


class PermissionTestCase(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_users()
        self.product = self.make_product('Mug', stock_qty=10)
        self.order = services.create_order(
            self.customer, [{'product_id': self.product.pk, 'quantity': 1}]
        )

    def test_non_staff_cannot_change_status(self):
        for user in (self.customer, self.dealer):
            with self.subTest(role=user.role):
                with self.assertRaises(ForbiddenError):
                    services.accept_order(user, self.order.pk)
                with self.assertRaises(ForbiddenError):
                    services.reject_order(user, self.order.pk)
                with self.assertRaises(ForbiddenError):
                    services.add_invoice_number(user, self.order.pk, 'INV-1')

    def test_other_users_order_is_invisible(self):
        with self.assertRaises(NotFoundError):
            services.get_order(self.other, self.order.pk)
        with self.assertRaises(NotFoundError):
            services.delete_order(self.other, self.order.pk)
        with self.assertRaises(NotFoundError):
            services.edit_order_items(
                self.other, self.order.pk, [{'product_id': self.product.pk, 'quantity': 1}]
            )

    def test_staff_can_see_any_order(self):
        self.assertEqual(services.get_order(self.manager, self.order.pk).pk, self.order.pk)

    def test_missing_order(self):
        with self.assertRaises(NotFoundError):
            services.get_order(self.admin, 99999)


class PricingTestCase(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_users()
        self.product = self.make_product('Tile', stock_qty=100, customer_price='10.00', dealer_price='7.00')

    def test_resolve_price(self):
        self.assertEqual(resolve_price(self.product, 'CUSTOMER'), Decimal('10.00'))
        self.assertEqual(resolve_price(self.product, 'ADMIN'), Decimal('10.00'))
        self.assertEqual(resolve_price(self.product, 'DEALER'), Decimal('7.00'))
        self.assertEqual(resolve_price(self.product, 'DEALER', Decimal('10')), Decimal('6.30'))

    def test_compute_totals(self):
        lines = [(self.product, 3)]

        retail = compute_totals(lines, RetailPricing())
        self.assertEqual(retail, (Decimal('30.00'), Decimal('30.00'), False))

        dealer = compute_totals(lines, DealerPricing())
        self.assertEqual(dealer.total_amount, Decimal('30.00'))
        self.assertEqual(dealer.final_amount, Decimal('21.00'))
        self.assertTrue(dealer.dealer_price_used)

    def test_dealer_order(self):
        order = services.create_order(self.dealer, [{'product_id': self.product.pk, 'quantity': 4}])

        self.assertTrue(order.dealer_price_used)
        self.assertEqual(order.total_amount, Decimal('40.00'))
        self.assertEqual(order.final_amount, Decimal('28.00'))
        self.assertEqual(order.items.get().unit_price, Decimal('7.00'))

    def test_dealer_margin_applies(self):
        self.dealer.margin_percent = Decimal('5.00')
        self.dealer.save()

        order = services.create_order(self.dealer, [{'product_id': self.product.pk, 'quantity': 2}])
        # 7.00 less 5% = 6.65
        self.assertEqual(order.final_amount, Decimal('13.30'))

    def test_customer_order(self):
        order = services.create_order(self.customer, [{'product_id': self.product.pk, 'quantity': 2}])

        self.assertFalse(order.dealer_price_used)
        self.assertEqual(order.total_amount, order.final_amount)

    def test_unit_price_is_a_snapshot(self):
        order = services.create_order(self.customer, [{'product_id': self.product.pk, 'quantity': 1}])
        Product.objects.filter(pk=self.product.pk).update(customer_price=Decimal('99.00'))

        item = order.items.get()
        self.assertEqual(item.unit_price, Decimal('10.00'))
        self.assertEqual(item.subtotal, Decimal('10.00'))

    def test_edit_reprices_for_the_owner(self):
        order = services.create_order(self.dealer, [{'product_id': self.product.pk, 'quantity': 1}])

        order = services.edit_order_items(
            self.admin, order.pk, [{'product_id': self.product.pk, 'quantity': 3}]
        )
        self.assertEqual(order.final_amount, Decimal('21.00'))
        self.assertTrue(order.dealer_price_used)


class NumberingTestCase(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_users()
        self.product = self.make_product('Pen', stock_qty=100)

    def test_order_numbers_per_role(self):
        items = [{'product_id': self.product.pk, 'quantity': 1}]

        first = services.create_order(self.customer, items)
        dealer = services.create_order(self.dealer, items)
        second = services.create_order(self.other, items)

        self.assertEqual(first.order_number, 'CO1')
        self.assertEqual(dealer.order_number, 'DO1')
        self.assertEqual(second.order_number, 'CO2')

    def test_next_order_number_increments(self):
        self.assertEqual(next_order_number('MANAGER'), 'CO1')
        self.assertEqual(next_order_number('CUSTOMER'), 'CO2')
        self.assertEqual(next_order_number('DEALER'), 'DO1')

    def test_duplicate_invoice_number(self):
        items = [{'product_id': self.product.pk, 'quantity': 1}]
        first = services.create_order(self.customer, items)
        second = services.create_order(self.customer, items)

        services.add_invoice_number(self.admin, first.pk, 'INV-1')
        with self.assertRaises(DuplicateInvoiceError):
            services.add_invoice_number(self.admin, second.pk, ' INV-1 ')

        second.refresh_from_db()
        self.assertEqual(second.status, Order.Status.PENDING)
        self.assertEqual(second.invoice_number, '')

    def test_invoice_number_taken_between_check_and_save(self):
        items = [{'product_id': self.product.pk, 'quantity': 1}]
        first = services.create_order(self.customer, items)
        second = services.create_order(self.customer, items)
        services.add_invoice_number(self.admin, first.pk, 'INV-1')

        # The unique constraint still catches a number the pre-check let through
        with patch('orders.services.validate_invoice_number', return_value='INV-1'):
            with self.assertRaises(DuplicateInvoiceError):
                services.add_invoice_number(self.admin, second.pk, 'INV-1')

        second.refresh_from_db()
        self.assertEqual(second.status, Order.Status.PENDING)
        self.assertEqual(second.invoice_number, '')

    def test_blank_invoice_number(self):
        order = services.create_order(self.customer, [{'product_id': self.product.pk, 'quantity': 1}])

        for candidate in ('', '   ', None):
            with self.subTest(candidate=candidate):
                with self.assertRaises(OrderValidationError):
                    services.add_invoice_number(self.admin, order.pk, candidate)

    def test_validate_invoice_number_ignores_own_order(self):
        order = services.create_order(self.customer, [{'product_id': self.product.pk, 'quantity': 1}])
        Order.objects.filter(pk=order.pk).update(invoice_number='INV-5')

        self.assertEqual(validate_invoice_number('INV-5', order.pk), 'INV-5')
        with self.assertRaises(DuplicateInvoiceError):
            validate_invoice_number('INV-5')


class BillingTestCase(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.make_users()
        self.customer.address = '1 Main Street'
        self.customer.save()
        self.product = self.make_product('Sofa', stock_qty=10, customer_price='100.00')
        self.order = services.create_order(
            self.customer, [{'product_id': self.product.pk, 'quantity': 2}]
        )

    def test_draft_bill(self):
        draft = billing.get_bill(self.admin, self.order.pk)

        self.assertFalse(draft['saved'])
        self.assertEqual(draft['subtotal'], Decimal('200.00'))
        self.assertEqual(draft['total_amount'], Decimal('200.00'))
        self.assertEqual(draft['customer_address'], '1 Main Street')
        self.assertEqual(draft['items'][0]['description'], 'Sofa')
        self.assertFalse(Bill.objects.exists())

    def test_save_bill_computes_missing_figures(self):
        bill = billing.save_bill(self.manager, self.order.pk, {
            'items': [
                {'product_id': self.product.pk, 'quantity': 2, 'price': Decimal('90.00')},
                {'description': 'Delivery crate', 'quantity': 1, 'price': Decimal('15.00')},
            ],
            'discount': Decimal('5.00'),
            'shipping_charge': Decimal('20.00'),
        })

        self.assertEqual(bill.subtotal, Decimal('195.00'))
        self.assertEqual(bill.total_amount, Decimal('210.00'))
        self.assertEqual(bill.items.count(), 2)
        self.assertEqual(bill.items.first().description, 'Sofa')

        # The order itself is never repriced
        self.order.refresh_from_db()
        self.assertEqual(self.order.final_amount, Decimal('200.00'))

    def test_save_bill_replaces_items(self):
        billing.save_bill(self.admin, self.order.pk, {
            'items': [{'product_id': self.product.pk, 'quantity': 2, 'price': Decimal('100.00')}],
        })
        bill = billing.save_bill(self.admin, self.order.pk, {
            'items': [{'description': 'Custom', 'quantity': 1, 'price': Decimal('50.00')}],
            'total_amount': Decimal('45.00'),
        })

        self.assertEqual(Bill.objects.count(), 1)
        self.assertEqual(bill.items.count(), 1)
        self.assertEqual(bill.total_amount, Decimal('45.00'))
        self.assertEqual(billing.get_bill(self.admin, self.order.pk).pk, bill.pk)

    def test_bill_is_staff_only(self):
        with self.assertRaises(ForbiddenError):
            billing.get_bill(self.customer, self.order.pk)
        with self.assertRaises(ForbiddenError):
            billing.save_bill(self.customer, self.order.pk, {'items': []})

    def test_bill_for_missing_order(self):
        with self.assertRaises(NotFoundError):
            billing.get_bill(self.admin, 99999)


@override_settings(RATE_LIMIT_ENABLED=False)
class OrderAPITestCase(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.client = APIClient()
        self.make_users()
        self.product = self.make_product('Rug', stock_qty=3, customer_price='50.00', dealer_price='40.00')

    def create(self, user, quantity=2):
        self.client.force_authenticate(user)
        return self.client.post(
            '/api/orders/',
            {'items': [{'product_id': self.product.pk, 'quantity': quantity}]},
            format='json'
        )

    def test_create_order(self):
        response = self.create(self.customer)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['order_number'], 'CO1')
        self.assertEqual(response.data['total_amount'], '100.00')
        self.assertEqual(len(response.data['items']), 1)

    def test_create_order_insufficient_stock(self):
        response = self.create(self.customer, quantity=5)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Insufficient Stock')
        self.assertEqual(response.data['product_id'], self.product.pk)
        self.assertEqual(response.data['requested'], 5)
        self.assertEqual(response.data['available'], 3)

    def test_create_order_invalid_payload(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post('/api/orders/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout(self):
        cart_services.add_item(self.dealer, self.product.pk, 1)
        self.client.force_authenticate(self.dealer)

        response = self.client.post('/api/orders/checkout/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order_number'], 'DO1')
        self.assertEqual(response.data['final_amount'], '40.00')

        response = self.client.post('/api/orders/checkout/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Empty Cart')

    def test_list_own_orders(self):
        self.create(self.customer, quantity=1)
        self.create(self.other, quantity=1)

        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/orders/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['item_count'], 1)

        self.client.force_authenticate(self.manager)
        response = self.client.get('/api/orders/')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get(f'/api/orders/?user_id={self.other.pk}&status=pending')
        self.assertEqual(response.data['count'], 1)

    def test_detail_of_other_users_order(self):
        order_id = self.create(self.customer).data['id']

        self.client.force_authenticate(self.other)
        response = self.client.get(f'/api/orders/{order_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_accept_invoice_flow(self):
        order_id = self.create(self.customer).data['id']

        response = self.client.post(f'/api/orders/{order_id}/accept/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.manager)
        response = self.client.post(f'/api/orders/{order_id}/accept/')
        self.assertEqual(response.data['status'], 'PROCESSING')

        response = self.client.put(
            f'/api/orders/{order_id}/invoice/', {'invoice_number': 'INV-1'}, format='json'
        )
        self.assertEqual(response.data['status'], 'COMPLETED')
        self.assertEqual(response.data['invoice_number'], 'INV-1')

        response = self.client.post(f'/api/orders/{order_id}/accept/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Invalid Transition')

        response = self.client.post(f'/api/orders/{order_id}/reject/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_blank_invoice_number(self):
        order_id = self.create(self.customer).data['id']

        self.client.force_authenticate(self.admin)
        response = self.client.put(
            f'/api/orders/{order_id}/invoice/', {'invoice_number': '   '}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_edit_items(self):
        order_id = self.create(self.customer).data['id']

        response = self.client.put(
            f'/api/orders/{order_id}/items/',
            {'items': [{'product_id': self.product.pk, 'quantity': 3}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['quantity'], 3)

        response = self.client.put(
            f'/api/orders/{order_id}/items/',
            {'items': [{'product_id': self.product.pk, 'quantity': 4}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_delete_order(self):
        order_id = self.create(self.customer).data['id']

        response = self.client.delete(f'/api/orders/{order_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 3)

    def test_bill_endpoints(self):
        order_id = self.create(self.customer).data['id']

        response = self.client.get(f'/api/bills/{order_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.get(f'/api/bills/{order_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['saved'])
        self.assertEqual(response.data['subtotal'], '100.00')

        response = self.client.put(f'/api/bills/{order_id}/', {
            'customer_name': 'Walk-in',
            'items': [{'product_id': self.product.pk, 'quantity': 2, 'price': '45.00'}],
            'discount': '10.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['saved'])
        self.assertEqual(response.data['total_amount'], '80.00')
        self.assertEqual(response.data['items'][0]['amount'], '90.00')

        response = self.client.get(f'/api/bills/{order_id}/')
        self.assertEqual(response.data['customer_name'], 'Walk-in')


class ConcurrentOrderTestCase(OrderFixtureMixin, TransactionTestCase):
    """
    Test concurrent order handling to verify select_for_update works.
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        self.make_users()
        # Only 10 units available
        self.product = self.make_product('Limited Stock Product', stock_qty=10)

    @skipUnlessDBFeature('has_select_for_update')
    def test_concurrent_orders_no_overselling(self):
        """
        Given: 10 units in stock
        When: Two concurrent orders of 8 units each
        Then: One succeeds, one fails with InsufficientStockError
        """
        results = {}

        def place_order(key, user):
            try:
                services.create_order(user, [{'product_id': self.product.pk, 'quantity': 8}])
                results[key] = 'PLACED'
            except InsufficientStockError:
                results[key] = 'REFUSED'
            finally:
                connections.close_all()

        threads = [
            threading.Thread(target=place_order, args=('order1', self.customer)),
            threading.Thread(target=place_order, args=('order2', self.other)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(results.values()), ['PLACED', 'REFUSED'])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_qty, 2)
        self.assertEqual(Order.objects.count(), 1)

    @skipUnlessDBFeature('has_select_for_update')
    def test_concurrent_order_numbers_are_unique(self):
        numbers = []
        lock = threading.Lock()

        def draw():
            try:
                number = next_order_number('CUSTOMER')
                with lock:
                    numbers.append(number)
            finally:
                connections.close_all()

        threads = [threading.Thread(target=draw) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(numbers), sorted(f'CO{i}' for i in range(1, 6)))
