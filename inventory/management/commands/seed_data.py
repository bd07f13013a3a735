"""
Management command to seed the database with sample data.

Generates:
- one user per role (admin, manager, dealer, customer)
- 200+ products with retail and dealer prices
- a stock count per product, with alert levels to match

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from decimal import Decimal
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from inventory.ledger import alert_level_for
from inventory.models import Product

User = get_user_model()

DEFAULT_PASSWORD = 'changeme123'


class Command(BaseCommand):
    help = 'Seed the database with sample users and products'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=200,
            help='Number of products to create (default: 200)',
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for reproducible data',
        )

    def handle(self, *args, **options):
        if options['seed'] is not None:
            random.seed(options['seed'])

        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            self._create_users()
            self._create_products(options['products'])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear orders, carts and products. Users are kept."""
        from cart.models import Cart
        from orders.models import Order

        Order.objects.all().delete()
        Cart.objects.all().delete()
        Product.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_users(self):
        accounts = [
            ('admin', User.Role.ADMIN, {'is_staff': True, 'is_superuser': True}),
            ('manager', User.Role.MANAGER, {'is_staff': True}),
            ('dealer', User.Role.DEALER, {'margin_percent': Decimal('5.00')}),
            ('customer', User.Role.CUSTOMER, {}),
        ]

        for username, role, extra in accounts:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={'role': role, 'email': f'{username}@example.com', **extra},
            )
            if created:
                user.set_password(DEFAULT_PASSWORD)
                user.save(update_fields=['password'])
                self.stdout.write(f'  Created {role.lower()} user: {username}')

    def _create_products(self, count):
        """Create sample products with realistic data."""
        product_templates = {
            'Electronics': [
                'Wireless Headphones', 'Bluetooth Speaker', 'USB-C Cable',
                'Power Bank', 'Smart Watch', 'Laptop Stand', 'Webcam HD',
            ],
            'Hardware': [
                'Cordless Drill', 'Socket Set', 'Tape Measure', 'Angle Grinder',
                'Wire Stripper', 'Spirit Level', 'Hex Key Set',
            ],
            'Home & Garden': [
                'Garden Hose', 'Plant Pot Set', 'LED Light Bulbs', 'Wall Clock',
                'Kitchen Knife Set', 'Storage Bins',
            ],
            'Office Supplies': [
                'Stapler', 'Desk Organizer', 'Printer Paper', 'Whiteboard',
                'Label Maker', 'Filing Cabinet',
            ],
        }

        adjectives = [
            'Premium', 'Deluxe', 'Professional', 'Classic', 'Compact',
            'Portable', 'Heavy-Duty', 'Essential', 'Ultimate'
        ]

        products = []
        existing_names = set()

        self.stdout.write(f'Creating {count} products...')

        for i in range(count):
            category = random.choice(list(product_templates))

            # Generate unique name
            for _ in range(10):
                base_name = random.choice(product_templates[category])
                name = f"{random.choice(adjectives)} {base_name} v{random.randint(1, 99)}"
                if name not in existing_names:
                    break
            else:
                name = f"Product {i + 1} - {category}"
            existing_names.add(name)

            customer_price = Decimal(str(round(random.uniform(5, 500), 2)))
            # Dealers buy at 70-90% of retail
            dealer_price = (customer_price * Decimal(str(random.uniform(0.7, 0.9)))).quantize(Decimal('0.01'))
            stock_qty = random.randint(0, 120)

            products.append(Product(
                name=name,
                sku=f"SKU-{i + 1:05d}",
                category=category,
                customer_price=customer_price,
                dealer_price=max(dealer_price, Decimal('0.01')),
                stock_qty=stock_qty,
                alert_level=alert_level_for(stock_qty),
                status=Product.Status.ACTIVE if random.random() > 0.05 else Product.Status.INACTIVE,
            ))

        Product.objects.bulk_create(products, batch_size=500)

        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products
