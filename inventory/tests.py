"""
Tests for the inventory ledger, product API and restock alerts.

Test Cases:
1. Alert level thresholds
2. Reserve / release keep stock and alert level in step
3. Reservation is all-or-nothing
4. Manual stock corrections
5. Restock alerts are queued after commit and reported by the task
6. Product API visibility and permissions
7. seed_data command
"""
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from core.exceptions import InsufficientStockError, NotFoundError, OrderValidationError
from inventory import ledger
from inventory.models import Product
from inventory.tasks import notify_stock_alert

User = get_user_model()


def make_product(name='Widget', stock_qty=0, customer_price='10.00', dealer_price='8.00', **extra):
    product = Product.objects.create(
        name=name,
        customer_price=Decimal(customer_price),
        dealer_price=Decimal(dealer_price),
        **extra
    )
    return ledger.set_stock(product.pk, stock_qty)


class AlertLevelTestCase(TestCase):

    def test_thresholds(self):
        expected = {
            0: 'CRITICAL',
            4: 'CRITICAL',
            5: 'LOW',
            19: 'LOW',
            20: 'WARNING',
            49: 'WARNING',
            50: 'NONE',
            1000: 'NONE',
        }
        for stock_qty, level in expected.items():
            with self.subTest(stock_qty=stock_qty):
                self.assertEqual(ledger.alert_level_for(stock_qty), level)

    def test_new_product_starts_critical(self):
        product = Product.objects.create(
            name='Fresh', customer_price=Decimal('1.00'), dealer_price=Decimal('1.00')
        )
        self.assertEqual(product.stock_qty, 0)
        self.assertEqual(product.alert_level, Product.AlertLevel.CRITICAL)


class LedgerTestCase(TestCase):
    """Test cases for reserve / release / set_stock."""

    def setUp(self):
        self.product1 = make_product('Drill', stock_qty=60)
        self.product2 = make_product('Saw', stock_qty=3)

    def test_reserve_decrements_and_recomputes_alert(self):
        ledger.reserve([(self.product1.pk, 15)])

        self.product1.refresh_from_db()
        self.assertEqual(self.product1.stock_qty, 45)
        self.assertEqual(self.product1.alert_level, Product.AlertLevel.WARNING)

    def test_reserve_exact_stock(self):
        ledger.reserve([(self.product2.pk, 3)])

        self.product2.refresh_from_db()
        self.assertEqual(self.product2.stock_qty, 0)
        self.assertTrue(self.product2.is_out_of_stock)
        self.assertEqual(self.product2.alert_level, Product.AlertLevel.CRITICAL)

    def test_reserve_is_all_or_nothing(self):
        """
        Given: Drill has 60 units, Saw has 3
        When: Reserving 10 drills and 5 saws
        Then: InsufficientStockError, and the drills are not deducted either
        """
        with self.assertRaises(InsufficientStockError) as context:
            ledger.reserve([(self.product1.pk, 10), (self.product2.pk, 5)])

        self.assertEqual(context.exception.product_id, self.product2.pk)
        self.assertEqual(context.exception.requested, 5)
        self.assertEqual(context.exception.available, 3)
        self.assertIn('Saw', str(context.exception))

        self.product1.refresh_from_db()
        self.product2.refresh_from_db()
        self.assertEqual(self.product1.stock_qty, 60)
        self.assertEqual(self.product1.alert_level, Product.AlertLevel.NONE)
        self.assertEqual(self.product2.stock_qty, 3)

    def test_reserve_sums_repeated_products(self):
        with self.assertRaises(InsufficientStockError):
            ledger.reserve([(self.product2.pk, 2), (self.product2.pk, 2)])

        ledger.reserve([(self.product2.pk, 1), (self.product2.pk, 2)])
        self.product2.refresh_from_db()
        self.assertEqual(self.product2.stock_qty, 0)

    def test_reserve_unknown_product(self):
        with self.assertRaises(NotFoundError):
            ledger.reserve([(self.product1.pk, 1), (99999, 1)])

        self.product1.refresh_from_db()
        self.assertEqual(self.product1.stock_qty, 60)

    def test_reserve_rejects_bad_quantity(self):
        for quantity in (0, -1, 1.5, True):
            with self.subTest(quantity=quantity):
                with self.assertRaises(OrderValidationError):
                    ledger.reserve([(self.product1.pk, quantity)])

    def test_release_restores_stock_and_alert(self):
        ledger.reserve([(self.product1.pk, 58)])
        self.product1.refresh_from_db()
        self.assertEqual(self.product1.alert_level, Product.AlertLevel.CRITICAL)

        ledger.release([(self.product1.pk, 58)])
        self.product1.refresh_from_db()
        self.assertEqual(self.product1.stock_qty, 60)
        self.assertEqual(self.product1.alert_level, Product.AlertLevel.NONE)

    def test_empty_item_list_is_noop(self):
        self.assertEqual(ledger.reserve([]), [])
        self.assertEqual(ledger.release([]), [])

    def test_set_stock(self):
        product = ledger.set_stock(self.product2.pk, 25)
        self.assertEqual(product.stock_qty, 25)
        self.assertEqual(product.alert_level, Product.AlertLevel.WARNING)

    def test_set_stock_rejects_negative(self):
        with self.assertRaises(OrderValidationError):
            ledger.set_stock(self.product2.pk, -1)

        self.product2.refresh_from_db()
        self.assertEqual(self.product2.stock_qty, 3)


class StockAlertTestCase(TestCase):

    def test_alert_queued_after_commit_for_low_stock(self):
        low = make_product('Low', stock_qty=10)
        plenty = make_product('Plenty', stock_qty=100)

        with patch('inventory.tasks.notify_stock_alert') as mock_task:
            with self.captureOnCommitCallbacks(execute=True):
                touched = ledger.reserve([(low.pk, 8), (plenty.pk, 1)])
                ledger.schedule_stock_alerts(touched)

        mock_task.delay.assert_called_once_with([low.pk])

    def test_no_alert_when_stock_is_healthy(self):
        plenty = make_product('Plenty', stock_qty=100)

        with patch('inventory.tasks.notify_stock_alert') as mock_task:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                ledger.schedule_stock_alerts(ledger.reserve([(plenty.pk, 1)]))

        self.assertEqual(len(callbacks), 0)
        mock_task.delay.assert_not_called()

    def test_queue_failure_is_logged_not_raised(self):
        low = make_product('Low', stock_qty=1)

        with patch('inventory.tasks.notify_stock_alert') as mock_task:
            mock_task.delay.side_effect = ConnectionError('broker down')
            with self.assertLogs('inventory.ledger', level='ERROR'):
                with self.captureOnCommitCallbacks(execute=True):
                    ledger.schedule_stock_alerts([low])

    def test_task_reports_current_levels(self):
        critical = make_product('Critical', stock_qty=2)
        restocked = make_product('Restocked', stock_qty=80)

        with self.assertLogs('inventory.tasks', level='WARNING') as logs:
            result = notify_stock_alert([critical.pk, restocked.pk])

        self.assertEqual(result['status'], 'success')
        self.assertEqual(
            result['reported'],
            [{'product_id': critical.pk, 'alert_level': 'CRITICAL', 'stock_qty': 2}]
        )
        self.assertIn('[RESTOCK] Critical', logs.output[0])


@override_settings(RATE_LIMIT_ENABLED=False)
class ProductAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.manager = User.objects.create_user('manager', password='secret-pass', role='MANAGER')
        self.customer = User.objects.create_user('customer', password='secret-pass', role='CUSTOMER')
        self.dealer = User.objects.create_user(
            'dealer', password='secret-pass', role='DEALER', margin_percent=Decimal('10.00')
        )
        self.active = make_product('Hammer', stock_qty=40, customer_price='20.00', dealer_price='15.00')
        self.inactive = make_product('Old Hammer', stock_qty=5, status=Product.Status.INACTIVE)

    def test_requires_authentication(self):
        response = self.client.get('/api/products/')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_customer_sees_active_products_only(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/products/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [p['name'] for p in response.data['results']]
        self.assertEqual(names, ['Hammer'])
        self.assertEqual(response.data['results'][0]['unit_price'], '20.00')

        response = self.client.get(f'/api/products/{self.inactive.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_dealer_sees_dealer_price_after_margin(self):
        self.client.force_authenticate(self.dealer)
        response = self.client.get(f'/api/products/{self.active.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        # 15.00 less 10%
        self.assertEqual(response.data['unit_price'], '13.50')

    def test_manager_sees_inactive_and_filters_by_alert(self):
        self.client.force_authenticate(self.manager)

        response = self.client.get('/api/products/')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/products/?alert_level=low')
        names = [p['name'] for p in response.data['results']]
        self.assertEqual(names, ['Old Hammer'])

    def test_search_by_name(self):
        make_product('Screwdriver', stock_qty=10)
        self.client.force_authenticate(self.customer)

        response = self.client.get('/api/products/?search=screw')
        names = [p['name'] for p in response.data['results']]
        self.assertEqual(names, ['Screwdriver'])

    def test_customer_cannot_create(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post('/api/products/', {
            'name': 'Nope', 'customer_price': '1.00', 'dealer_price': '1.00'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_create_sets_alert_level(self):
        self.client.force_authenticate(self.manager)
        response = self.client.post('/api/products/', {
            'name': 'Wrench',
            'customer_price': '12.50',
            'dealer_price': '10.00',
            'stock_qty': 30,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stock_qty'], 30)
        self.assertEqual(response.data['alert_level'], 'WARNING')

    def test_manager_stock_edit_recomputes_alert(self):
        self.client.force_authenticate(self.manager)
        response = self.client.patch(
            f'/api/products/{self.active.pk}/', {'stock_qty': 3}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.active.refresh_from_db()
        self.assertEqual(self.active.stock_qty, 3)
        self.assertEqual(self.active.alert_level, Product.AlertLevel.CRITICAL)

    def test_alert_level_is_read_only(self):
        self.client.force_authenticate(self.manager)
        self.client.patch(
            f'/api/products/{self.active.pk}/', {'alert_level': 'NONE'}, format='json'
        )
        self.active.refresh_from_db()
        self.assertEqual(self.active.alert_level, Product.AlertLevel.WARNING)

    def test_negative_stock_rejected(self):
        self.client.force_authenticate(self.manager)
        response = self.client.patch(
            f'/api/products/{self.active.pk}/', {'stock_qty': -2}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_product_referenced_by_order(self):
        from orders.services import create_order

        create_order(self.customer, [{'product_id': self.active.pk, 'quantity': 1}])
        self.client.force_authenticate(self.manager)

        response = self.client.delete(f'/api/products/{self.active.pk}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Product.objects.filter(pk=self.active.pk).exists())

    def test_delete_unreferenced_product(self):
        self.client.force_authenticate(self.manager)
        response = self.client.delete(f'/api/products/{self.inactive.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class SeedDataCommandTestCase(TestCase):

    def test_seed_creates_users_and_products(self):
        out = StringIO()
        call_command('seed_data', products=25, seed=7, stdout=out)

        self.assertEqual(Product.objects.count(), 25)
        for role in ('ADMIN', 'MANAGER', 'DEALER', 'CUSTOMER'):
            self.assertTrue(User.objects.filter(role=role).exists())
        for product in Product.objects.all():
            self.assertEqual(product.alert_level, ledger.alert_level_for(product.stock_qty))
            self.assertLessEqual(product.dealer_price, product.customer_price)
        self.assertIn('completed successfully', out.getvalue())

    def test_seed_clear_replaces_products(self):
        make_product('Leftover', stock_qty=1)
        call_command('seed_data', products=5, clear=True, stdout=StringIO())

        self.assertEqual(Product.objects.count(), 5)
        self.assertFalse(Product.objects.filter(name='Leftover').exists())
