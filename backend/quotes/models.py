import secrets
import string
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

QUOTE_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


class QuoteStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    RESPONDED = 'RESPONDED', 'Responded'
    CLOSED = 'CLOSED', 'Closed'
    CANCELLED = 'CANCELLED', 'Cancelled'


def generate_quote_number():
    """Q-YYYYMMDD-XXXXXXXX"""
    suffix = ''.join(secrets.choice(QUOTE_NUMBER_ALPHABET) for _ in range(8))
    return f"Q-{timezone.now():%Y%m%d}-{suffix}"


class QuoteRequest(models.Model):
    """Customer request for pricing on one or more products"""
    quote_number = models.CharField(max_length=20, unique=True, default=generate_quote_number, editable=False)
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField(db_index=True)
    customer_phone = models.CharField(max_length=50, blank=True)
    company = models.CharField(max_length=255, blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True)
    message = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=QuoteStatus.choices, default=QuoteStatus.PENDING, db_index=True)
    response = models.TextField(blank=True)
    submitted_at = models.DateTimeField(default=timezone.now, db_index=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    def __str__(self):
        return f"{self.quote_number} - {self.customer_name}"

    def estimated_total(self):
        """Sum of line totals after bulk discounts; currency of the first line"""
        total = Decimal('0.00')
        currency = None
        for item in self.products.all():
            _, _, line_total = item.product.get_price_for_quantity(item.quantity)
            total += line_total
            currency = currency or item.product.currency
        return total, currency

    class Meta:
        db_table = 'quote_requests'
        ordering = ['-submitted_at', '-id']


class QuoteProduct(models.Model):
    """One requested product line of a quote"""
    quote = models.ForeignKey(QuoteRequest, on_delete=models.CASCADE, related_name='products')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='quote_items')
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    notes = models.TextField(blank=True)

    def __str__(self):
        return f"{self.quote_id}: {self.quantity} x {self.product_id}"

    class Meta:
        db_table = 'quote_products'
        ordering = ['id']
