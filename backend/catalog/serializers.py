from rest_framework import serializers
from .models import Product, ProductImage, ProductDocument, BulkDiscount


class ProductImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = ['id', 'url', 'alt', 'media', 'created_at']


class ProductDocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductDocument
        fields = ['id', 'product', 'name', 'url', 'type', 'media', 'created_at']


class BulkDiscountSerializer(serializers.ModelSerializer):
    discount = serializers.DecimalField(max_digits=5, decimal_places=4, coerce_to_string=False)

    class Meta:
        model = BulkDiscount
        fields = ['id', 'min_quantity', 'discount']


class ProductSerializer(serializers.ModelSerializer):
    """Read representation with gallery, documents and bulk pricing embedded"""
    base_price = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    availability_display = serializers.CharField(source='get_availability_display', read_only=True)
    images = ProductImageSerializer(many=True, read_only=True)
    documents = ProductDocumentSerializer(many=True, read_only=True)
    bulk_discounts = BulkDiscountSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'category', 'category_display', 'brand',
            'diameter', 'length', 'material', 'pressure_rating', 'temperature',
            'standards', 'applications', 'base_price', 'currency', 'price_per_unit',
            'availability', 'availability_display', 'images', 'documents', 'bulk_discounts',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProductSummarySerializer(serializers.ModelSerializer):
    """Compact product used inside quotes and reports"""
    base_price = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)

    class Meta:
        model = Product
        fields = ['id', 'name', 'category', 'brand', 'base_price', 'currency', 'price_per_unit', 'availability']
        read_only_fields = fields


def product_audit_data(product):
    """Plain snapshot of a product for audit change tracking"""
    return {
        'name': product.name,
        'description': product.description,
        'category': product.category,
        'brand': product.brand,
        'diameter': product.diameter,
        'length': product.length,
        'material': product.material,
        'pressure_rating': product.pressure_rating,
        'temperature': product.temperature,
        'standards': list(product.standards or []),
        'applications': list(product.applications or []),
        'base_price': str(product.base_price),
        'currency': product.currency,
        'price_per_unit': product.price_per_unit,
        'availability': product.availability,
        'bulk_discounts': [
            {'min_quantity': d.min_quantity, 'discount': str(d.discount)}
            for d in product.bulk_discounts.order_by('min_quantity')
        ],
    }
