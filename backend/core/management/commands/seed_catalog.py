"""
Management command to seed back-office users, sample products and media
Usage: python manage.py seed_catalog [--password secret]
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from backend.catalog.models import Product, BulkDiscount, ProductCategory, AvailabilityStatus
from backend.core.cache_signals import suspend_cache_signals
from backend.core.cache_utils import invalidate_products_cache, invalidate_dashboard_cache
from backend.core.models import User, UserRole, Permission
from backend.media.models import Media, MediaType

USERS = [
    {
        'email': 'admin@pipesupply.com',
        'name': 'System Administrator',
        'role': UserRole.ADMIN,
        'permissions': Permission.values,
    },
    {
        'email': 'manager@pipesupply.com',
        'name': 'Content Manager',
        'role': UserRole.CONTENT_MANAGER,
        'permissions': [Permission.MANAGE_PRODUCTS, Permission.MANAGE_MEDIA, Permission.VIEW_ANALYTICS],
    },
]

PRODUCTS = [
    {
        'name': 'Steel Pipe 2" x 10ft',
        'description': 'High-quality steel pipe suitable for industrial applications',
        'category': ProductCategory.STEEL_PIPE,
        'brand': 'Industrial Steel Co.',
        'diameter': '2 inches',
        'length': '10 feet',
        'material': 'Carbon Steel',
        'pressure_rating': '150 PSI',
        'temperature': '-20°F to 400°F',
        'standards': ['ASTM A53', 'API 5L'],
        'applications': ['Water supply', 'Gas distribution', 'Industrial piping'],
        'base_price': Decimal('45.99'),
        'price_per_unit': 'per foot',
        'availability': AvailabilityStatus.IN_STOCK,
    },
    {
        'name': 'PVC Pipe 4" x 20ft',
        'description': 'Durable PVC pipe for residential and commercial use',
        'category': ProductCategory.PVC_PIPE,
        'brand': 'PlastiFlow',
        'diameter': '4 inches',
        'length': '20 feet',
        'material': 'PVC',
        'pressure_rating': '200 PSI',
        'temperature': '32°F to 140°F',
        'standards': ['ASTM D1785', 'NSF 61'],
        'applications': ['Drainage', 'Sewer systems', 'Irrigation'],
        'base_price': Decimal('28.50'),
        'price_per_unit': 'per foot',
        'availability': AvailabilityStatus.IN_STOCK,
    },
    {
        'name': 'Copper Pipe 1" x 8ft',
        'description': 'Premium copper pipe for plumbing applications',
        'category': ProductCategory.COPPER_PIPE,
        'brand': 'CopperMax',
        'diameter': '1 inch',
        'length': '8 feet',
        'material': 'Type L Copper',
        'pressure_rating': '300 PSI',
        'temperature': '-100°F to 250°F',
        'standards': ['ASTM B88', 'NSF 61'],
        'applications': ['Potable water', 'HVAC', 'Medical gas'],
        'base_price': Decimal('67.25'),
        'price_per_unit': 'per foot',
        'availability': AvailabilityStatus.LOW_STOCK,
    },
]

# (min_quantity, discount) applied to every sample product
BULK_DISCOUNTS = [(10, Decimal('0.05')), (50, Decimal('0.10')), (100, Decimal('0.15'))]

MEDIA = [
    {
        'filename': 'steel-pipe-catalog.pdf',
        'original_name': 'Steel Pipe Product Catalog.pdf',
        'url': '/media/documents/steel-pipe-catalog.pdf',
        'mime_type': 'application/pdf',
        'size': 2048576,
        'type': MediaType.DOCUMENT,
    },
    {
        'filename': 'pvc-pipe-image.jpg',
        'original_name': 'PVC Pipe Product Image.jpg',
        'url': '/media/images/pvc-pipe-image.jpg',
        'mime_type': 'image/jpeg',
        'size': 512000,
        'type': MediaType.IMAGE,
    },
]


class Command(BaseCommand):
    help = "Creates the back-office users, sample products and sample media (idempotent)"

    def add_arguments(self, parser):
        parser.add_argument(
            '--password',
            help='Password for newly created users; without it they get an unusable password',
        )

    def handle(self, *args, **options):
        password = options.get('password')

        with transaction.atomic(), suspend_cache_signals():
            for user_data in USERS:
                self._seed_user(user_data, password)
            for product_data in PRODUCTS:
                self._seed_product(product_data)
            for media_data in MEDIA:
                self._seed_media(media_data)

        invalidate_products_cache()
        invalidate_dashboard_cache()
        self.stdout.write(self.style.SUCCESS('Seeding completed'))

    def _seed_user(self, data, password):
        user, created = User.objects.get_or_create(
            email=data['email'],
            defaults={
                'name': data['name'],
                'role': data['role'],
                'permissions': list(data['permissions']),
            },
        )
        if not created:
            self.stdout.write(f"  User already exists: {user.email}")
            return
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
            self.stdout.write(self.style.WARNING(f"  {user.email} has no usable password; run changepassword"))
        user.save()
        self.stdout.write(self.style.SUCCESS(f"✓ Created user: {user.email}"))

    def _seed_product(self, data):
        existing = Product.objects.filter(name=data['name']).first()
        if existing:
            self.stdout.write(f"  Product already exists: {existing.name}")
            return
        product = Product.objects.create(**data)
        BulkDiscount.objects.bulk_create([
            BulkDiscount(product=product, min_quantity=min_quantity, discount=discount)
            for min_quantity, discount in BULK_DISCOUNTS
        ])
        self.stdout.write(self.style.SUCCESS(f"✓ Created product: {product.name}"))

    def _seed_media(self, data):
        media, created = Media.objects.get_or_create(filename=data['filename'], defaults=data)
        if created:
            self.stdout.write(self.style.SUCCESS(f"✓ Created media: {media.filename}"))
        else:
            self.stdout.write(f"  Media already exists: {media.filename}")
