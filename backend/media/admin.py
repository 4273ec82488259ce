from django.contrib import admin
from .models import Media


@admin.register(Media)
class MediaAdmin(admin.ModelAdmin):
    list_display = ['original_name', 'filename', 'type', 'mime_type', 'size', 'uploaded_by', 'created_at']
    list_filter = ['type', 'mime_type', 'created_at']
    search_fields = ['original_name', 'filename', 'mime_type']
    readonly_fields = ['filename', 'url', 'thumbnail_url', 'size', 'created_at', 'updated_at']
    raw_id_fields = ['uploaded_by']
