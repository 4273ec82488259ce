from django.contrib import admin
from .models import Product, ProductImage, ProductDocument, BulkDiscount


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0
    fields = ['url', 'alt', 'media']
    raw_id_fields = ['media']


class ProductDocumentInline(admin.TabularInline):
    model = ProductDocument
    extra = 0
    fields = ['name', 'url', 'type', 'media']
    raw_id_fields = ['media']


class BulkDiscountInline(admin.TabularInline):
    model = BulkDiscount
    extra = 0
    fields = ['min_quantity', 'discount']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'brand', 'material', 'base_price', 'currency', 'availability', 'updated_at']
    list_filter = ['category', 'availability', 'currency', 'created_at']
    search_fields = ['name', 'description', 'brand', 'material']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ProductImageInline, ProductDocumentInline, BulkDiscountInline]


@admin.register(ProductDocument)
class ProductDocumentAdmin(admin.ModelAdmin):
    list_display = ['name', 'product', 'type', 'created_at']
    list_filter = ['type']
    search_fields = ['name', 'product__name']
    raw_id_fields = ['product', 'media']
