from rest_framework import serializers

from backend.catalog.serializers import ProductSummarySerializer
from .models import QuoteRequest, QuoteProduct


class QuoteProductSerializer(serializers.ModelSerializer):
    product = ProductSummarySerializer(read_only=True)
    product_id = serializers.IntegerField(read_only=True)
    unit_price = serializers.SerializerMethodField()
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = QuoteProduct
        fields = ['id', 'product_id', 'product', 'quantity', 'notes', 'unit_price', 'line_total']
        read_only_fields = fields

    def _pricing(self, obj):
        if not hasattr(obj, '_pricing_cache'):
            obj._pricing_cache = obj.product.get_price_for_quantity(obj.quantity)
        return obj._pricing_cache

    def get_unit_price(self, obj):
        return float(self._pricing(obj)[0])

    def get_line_total(self, obj):
        return float(self._pricing(obj)[2])


class QuoteRequestSerializer(serializers.ModelSerializer):
    """Quote with its product lines and a discounted estimate"""
    products = QuoteProductSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    estimated_total = serializers.SerializerMethodField()
    currency = serializers.SerializerMethodField()

    class Meta:
        model = QuoteRequest
        fields = [
            'id', 'quote_number', 'customer_name', 'customer_email', 'customer_phone',
            'company', 'address', 'city', 'state', 'zip_code', 'country', 'message',
            'status', 'status_display', 'response', 'products', 'estimated_total', 'currency',
            'submitted_at', 'responded_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_estimated_total(self, obj):
        return float(obj.estimated_total()[0])

    def get_currency(self, obj):
        return obj.estimated_total()[1]


def quote_audit_data(quote):
    """Plain snapshot of the editable quote fields"""
    return {
        'status': quote.status,
        'response': quote.response,
        'responded_at': quote.responded_at.isoformat() if quote.responded_at else None,
    }
