"""
Tests for user administration endpoints.
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from orders.models import Order

User = get_user_model()


@override_settings(RATE_LIMIT_ENABLED=False)
class UserAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user('admin', password='secret-pass', role='ADMIN')
        self.manager = User.objects.create_user('manager', password='secret-pass', role='MANAGER')
        self.customer = User.objects.create_user(
            'customer', password='secret-pass', role='CUSTOMER', email='customer@example.com'
        )

    def test_me(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/users/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'customer')
        self.assertNotIn('password', response.data)

    def test_admin_creates_dealer(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/', {
            'username': 'dealer',
            'email': 'dealer@example.com',
            'password': 'dealer-pass-1',
            'role': 'DEALER',
            'margin_percent': '7.50',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        dealer = User.objects.get(username='dealer')
        self.assertTrue(dealer.is_dealer)
        self.assertEqual(dealer.margin_percent, Decimal('7.50'))
        self.assertTrue(dealer.check_password('dealer-pass-1'))

    def test_create_requires_password(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/', {'username': 'nopass'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_email_rejected(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/', {
            'username': 'copycat',
            'email': 'CUSTOMER@example.com',
            'password': 'another-pass',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_margin_out_of_range(self):
        self.client.force_authenticate(self.admin)
        response = self.client.patch(
            f'/api/users/{self.customer.pk}/', {'margin_percent': '150'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_can_list_but_not_create(self):
        self.client.force_authenticate(self.manager)

        response = self.client.get('/api/users/?role=customer')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['username'] for u in response.data['results']], ['customer'])

        response = self.client.post('/api/users/', {
            'username': 'sneaky', 'password': 'sneaky-pass'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_customer_cannot_list(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_toggle(self):
        self.client.force_authenticate(self.manager)

        response = self.client.post(f'/api/users/{self.customer.pk}/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

        self.customer.refresh_from_db()
        self.assertFalse(self.customer.is_active)

        response = self.client.post(f'/api/users/{self.customer.pk}/status/')
        self.assertTrue(response.data['is_active'])

    def test_inactive_user_is_locked_out(self):
        self.customer.is_active = False
        self.customer.save()

        self.client.force_authenticate(self.customer)
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_user_with_orders_is_refused(self):
        Order.objects.create(order_number='CO1', user=self.customer)
        self.client.force_authenticate(self.admin)

        response = self.client.delete(f'/api/users/{self.customer.pk}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(User.objects.filter(pk=self.customer.pk).exists())

    def test_delete_user(self):
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/users/{self.customer.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_manager_cannot_delete(self):
        self.client.force_authenticate(self.manager)
        response = self.client.delete(f'/api/users/{self.customer.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AdminSiteTestCase(TestCase):
    """Every registered changelist renders for a superuser."""

    def setUp(self):
        self.superuser = User.objects.create_superuser(
            'root', 'root@example.com', 'root-pass-123', role='ADMIN'
        )
        self.client.force_login(self.superuser)

    def test_changelists_render(self):
        for url in (
            '/admin/accounts/user/',
            '/admin/inventory/product/',
            '/admin/cart/cart/',
            '/admin/orders/order/',
            '/admin/orders/bill/',
            '/admin/orders/ordersequence/',
        ):
            with self.subTest(url=url):
                self.assertEqual(self.client.get(url).status_code, 200)
