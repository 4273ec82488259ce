from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from decimal import Decimal, ROUND_HALF_UP


class ProductCategory(models.TextChoices):
    STEEL_PIPE = 'STEEL_PIPE', 'Steel Pipe'
    PVC_PIPE = 'PVC_PIPE', 'PVC Pipe'
    COPPER_PIPE = 'COPPER_PIPE', 'Copper Pipe'
    GALVANIZED_PIPE = 'GALVANIZED_PIPE', 'Galvanized Pipe'
    CAST_IRON_PIPE = 'CAST_IRON_PIPE', 'Cast Iron Pipe'
    FLEXIBLE_PIPE = 'FLEXIBLE_PIPE', 'Flexible Pipe'
    SPECIALTY_PIPE = 'SPECIALTY_PIPE', 'Specialty Pipe'


class AvailabilityStatus(models.TextChoices):
    IN_STOCK = 'IN_STOCK', 'In Stock'
    OUT_OF_STOCK = 'OUT_OF_STOCK', 'Out of Stock'
    DISCONTINUED = 'DISCONTINUED', 'Discontinued'
    SPECIAL_ORDER = 'SPECIAL_ORDER', 'Special Order'
    LOW_STOCK = 'LOW_STOCK', 'Low Stock'


class Currency(models.TextChoices):
    USD = 'USD', 'US Dollar'
    EUR = 'EUR', 'Euro'
    GBP = 'GBP', 'British Pound'
    CAD = 'CAD', 'Canadian Dollar'
    AUD = 'AUD', 'Australian Dollar'


class Product(models.Model):
    """Pipe product with its specification and list price"""
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(max_length=2000)
    category = models.CharField(max_length=30, choices=ProductCategory.choices, db_index=True)
    brand = models.CharField(max_length=100, db_index=True)
    diameter = models.CharField(max_length=100)
    length = models.CharField(max_length=100)
    material = models.CharField(max_length=100)
    pressure_rating = models.CharField(max_length=100)
    temperature = models.CharField(max_length=100)
    standards = models.JSONField(default=list, blank=True)
    applications = models.JSONField(default=list, blank=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    price_per_unit = models.CharField(max_length=100)  # e.g. "per foot", "per piece"
    availability = models.CharField(max_length=20, choices=AvailabilityStatus.choices, default=AvailabilityStatus.IN_STOCK, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.brand})"

    def get_applicable_discount(self, quantity):
        """Bulk discount with the largest min_quantity not above quantity, or None"""
        return (
            self.bulk_discounts.filter(min_quantity__lte=quantity)
            .order_by('-min_quantity')
            .first()
        )

    def get_price_for_quantity(self, quantity):
        """Return (unit_price, discount_rate, line_total) for an order of `quantity`"""
        discount = self.get_applicable_discount(quantity)
        rate = discount.discount if discount else Decimal('0')
        unit_price = (self.base_price * (Decimal('1') - rate)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        return unit_price, rate, unit_price * quantity

    class Meta:
        db_table = 'products'
        ordering = ['-created_at', '-id']


class ProductImage(models.Model):
    """Image shown in a product gallery"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    url = models.CharField(max_length=500)
    alt = models.CharField(max_length=255, blank=True)
    media = models.ForeignKey('media.Media', on_delete=models.SET_NULL, null=True, blank=True, related_name='product_images')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.alt or self.url

    class Meta:
        db_table = 'product_images'
        ordering = ['id']


class ProductDocument(models.Model):
    """Document attached to a product; `type` is a document category id"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='documents')
    name = models.CharField(max_length=255)
    url = models.CharField(max_length=500)
    type = models.CharField(max_length=50, blank=True, db_index=True)
    media = models.ForeignKey('media.Media', on_delete=models.SET_NULL, null=True, blank=True, related_name='product_documents')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'product_documents'
        ordering = ['id']


class BulkDiscount(models.Model):
    """Fractional discount applied from min_quantity units upward"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='bulk_discounts')
    min_quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    discount = models.DecimalField(
        max_digits=5, decimal_places=4,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('1'))],
    )

    def __str__(self):
        return f"{self.product_id}: {self.discount} from {self.min_quantity}"

    class Meta:
        db_table = 'bulk_discounts'
        ordering = ['min_quantity']
        constraints = [
            models.UniqueConstraint(fields=['product', 'min_quantity'], name='unique_product_min_quantity'),
        ]
