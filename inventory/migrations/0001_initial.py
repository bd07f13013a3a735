import django.core.validators
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Product name for display and search', max_length=200)),
                ('description', models.TextField(blank=True, default='', help_text='Optional product description')),
                ('sku', models.CharField(blank=True, default='', help_text='Stock keeping unit', max_length=64)),
                ('category', models.CharField(blank=True, db_index=True, default='', help_text='Free-form category label', max_length=100)),
                ('image_url', models.CharField(blank=True, default='', help_text='URL of the product image', max_length=500)),
                ('customer_price', models.DecimalField(decimal_places=2, help_text='Retail price paid by customers', max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('dealer_price', models.DecimalField(decimal_places=2, help_text='Price paid by dealers', max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('stock_qty', models.PositiveIntegerField(default=0, help_text='Units currently in stock')),
                ('alert_level', models.CharField(choices=[('NONE', 'None'), ('WARNING', 'Warning'), ('LOW', 'Low'), ('CRITICAL', 'Critical')], db_index=True, default='CRITICAL', help_text='Restock alert level derived from stock_qty', max_length=10)),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('INACTIVE', 'Inactive')], db_index=True, default='ACTIVE', help_text='Whether product is available for ordering', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['name', 'status'], name='product_name_status_idx'),
                    models.Index(fields=['alert_level', 'stock_qty'], name='product_alert_stock_idx'),
                ],
            },
        ),
    ]
