# Generated manually for the initial schema

import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('media', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=255)),
                ('description', models.TextField(max_length=2000)),
                ('category', models.CharField(choices=[('STEEL_PIPE', 'Steel Pipe'), ('PVC_PIPE', 'PVC Pipe'), ('COPPER_PIPE', 'Copper Pipe'), ('GALVANIZED_PIPE', 'Galvanized Pipe'), ('CAST_IRON_PIPE', 'Cast Iron Pipe'), ('FLEXIBLE_PIPE', 'Flexible Pipe'), ('SPECIALTY_PIPE', 'Specialty Pipe')], db_index=True, max_length=30)),
                ('brand', models.CharField(db_index=True, max_length=100)),
                ('diameter', models.CharField(max_length=100)),
                ('length', models.CharField(max_length=100)),
                ('material', models.CharField(max_length=100)),
                ('pressure_rating', models.CharField(max_length=100)),
                ('temperature', models.CharField(max_length=100)),
                ('standards', models.JSONField(blank=True, default=list)),
                ('applications', models.JSONField(blank=True, default=list)),
                ('base_price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('currency', models.CharField(choices=[('USD', 'US Dollar'), ('EUR', 'Euro'), ('GBP', 'British Pound'), ('CAD', 'Canadian Dollar'), ('AUD', 'Australian Dollar')], default='USD', max_length=3)),
                ('price_per_unit', models.CharField(max_length=100)),
                ('availability', models.CharField(choices=[('IN_STOCK', 'In Stock'), ('OUT_OF_STOCK', 'Out of Stock'), ('DISCONTINUED', 'Discontinued'), ('SPECIAL_ORDER', 'Special Order'), ('LOW_STOCK', 'Low Stock')], db_index=True, default='IN_STOCK', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'products',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='ProductImage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('url', models.CharField(max_length=500)),
                ('alt', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('media', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='product_images', to='media.media')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='images', to='catalog.product')),
            ],
            options={
                'db_table': 'product_images',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='ProductDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('url', models.CharField(max_length=500)),
                ('type', models.CharField(blank=True, db_index=True, max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('media', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='product_documents', to='media.media')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to='catalog.product')),
            ],
            options={
                'db_table': 'product_documents',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='BulkDiscount',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('min_quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('discount', models.DecimalField(decimal_places=4, max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('1'))])),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bulk_discounts', to='catalog.product')),
            ],
            options={
                'db_table': 'bulk_discounts',
                'ordering': ['min_quantity'],
                'constraints': [models.UniqueConstraint(fields=('product', 'min_quantity'), name='unique_product_min_quantity')],
            },
        ),
    ]
