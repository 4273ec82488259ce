"""
Test utilities and factories for creating test data
"""
import io
import random
import string
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from backend.catalog.models import Product, ProductDocument, BulkDiscount, ProductCategory
from backend.core.models import UserRole, Permission
from backend.media.models import Media, MediaType
from backend.quotes.models import QuoteRequest, QuoteProduct

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(email=None, role=UserRole.CUSTOMER, permissions=None, password='testpass123', name=None):
        """Create a test user"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(
            email=email,
            password=password,
            name=name or 'Test User',
            role=role,
            permissions=list(permissions or []),
        )

    @staticmethod
    def create_admin(email=None, password='testpass123'):
        return TestDataFactory.create_user(
            email=email, role=UserRole.ADMIN, permissions=Permission.values, password=password, name='Admin User',
        )

    @staticmethod
    def create_content_manager(email=None, password='testpass123'):
        return TestDataFactory.create_user(
            email=email,
            role=UserRole.CONTENT_MANAGER,
            permissions=[Permission.MANAGE_PRODUCTS, Permission.MANAGE_MEDIA, Permission.MANAGE_QUOTES],
            password=password,
            name='Content Manager',
        )

    @staticmethod
    def product_payload(**overrides):
        """Valid product create payload"""
        payload = {
            'name': f'Steel Pipe {TestDataFactory.random_string(4)}',
            'description': 'Schedule 40 carbon steel pipe for industrial use',
            'category': 'STEEL_PIPE',
            'brand': 'SteelCorp',
            'diameter': '2 inch',
            'length': '20 feet',
            'material': 'Carbon Steel',
            'pressure_rating': '300 PSI',
            'temperature': '-20F to 400F',
            'standards': ['ASTM A53'],
            'applications': ['Water distribution'],
            'base_price': 45.99,
            'currency': 'USD',
            'price_per_unit': 'per foot',
        }
        payload.update(overrides)
        return payload

    @staticmethod
    def create_product(name=None, base_price='45.99', category=ProductCategory.STEEL_PIPE, brand='SteelCorp',
                       material='Carbon Steel', discounts=None, **fields):
        """Create a test product; `discounts` is a list of (min_quantity, rate)"""
        product = Product.objects.create(
            name=name or f'Pipe_{TestDataFactory.random_string(6)}',
            description=fields.pop('description', 'Test pipe'),
            category=category,
            brand=brand,
            diameter=fields.pop('diameter', '2 inch'),
            length=fields.pop('length', '20 feet'),
            material=material,
            pressure_rating=fields.pop('pressure_rating', '300 PSI'),
            temperature=fields.pop('temperature', '-20F to 400F'),
            base_price=Decimal(str(base_price)),
            price_per_unit=fields.pop('price_per_unit', 'per foot'),
            **fields
        )
        for min_quantity, rate in discounts or []:
            BulkDiscount.objects.create(product=product, min_quantity=min_quantity, discount=Decimal(str(rate)))
        return product

    @staticmethod
    def create_quote(products=None, email=None, **fields):
        """Create a quote; `products` is a list of (product, quantity)"""
        quote = QuoteRequest.objects.create(
            customer_name=fields.pop('customer_name', 'John Doe'),
            customer_email=email or f'customer_{TestDataFactory.random_string(6).lower()}@example.com',
            **fields
        )
        for product, quantity in products or []:
            QuoteProduct.objects.create(quote=quote, product=product, quantity=quantity)
        return quote

    @staticmethod
    def create_media(media_type=MediaType.DOCUMENT, mime_type='application/pdf', original_name=None, size=1024):
        """Create a media record without a file on disk"""
        filename = f'{TestDataFactory.random_string(12).lower()}.{"jpg" if media_type == MediaType.IMAGE else "pdf"}'
        return Media.objects.create(
            filename=filename,
            original_name=original_name or filename,
            url=f'/media/uploads/{filename}',
            mime_type=mime_type,
            size=size,
            type=media_type,
        )

    @staticmethod
    def create_product_document(product, media=None, category='technical-specs', name='Spec sheet'):
        return ProductDocument.objects.create(
            product=product,
            media=media,
            name=name,
            url=media.url if media else '/media/uploads/spec.pdf',
            type=category,
        )

    @staticmethod
    def image_bytes(width=1600, height=900, image_format='PNG', color=(200, 30, 30)):
        """Encoded image generated with Pillow"""
        buffer = io.BytesIO()
        Image.new('RGB', (width, height), color).save(buffer, format=image_format)
        return buffer.getvalue()

    @staticmethod
    def image_upload(name='photo.png', width=1600, height=900):
        return SimpleUploadedFile(name, TestDataFactory.image_bytes(width, height), content_type='image/png')

    @staticmethod
    def pdf_upload(name='datasheet.pdf', content=b'%PDF-1.4 test document'):
        return SimpleUploadedFile(name, content, content_type='application/pdf')


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
