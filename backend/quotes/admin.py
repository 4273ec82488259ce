from django.contrib import admin
from .models import QuoteRequest, QuoteProduct


class QuoteProductInline(admin.TabularInline):
    model = QuoteProduct
    extra = 0
    fields = ['product', 'quantity', 'notes']
    raw_id_fields = ['product']


@admin.register(QuoteRequest)
class QuoteRequestAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'customer_name', 'customer_email', 'company', 'status', 'submitted_at', 'responded_at']
    list_filter = ['status', 'submitted_at']
    search_fields = ['quote_number', 'customer_name', 'customer_email', 'company']
    readonly_fields = ['quote_number', 'submitted_at', 'responded_at', 'updated_at', 'ip_address']
    date_hierarchy = 'submitted_at'
    inlines = [QuoteProductInline]
