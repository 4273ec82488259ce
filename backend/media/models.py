from django.conf import settings
from django.db import models


class MediaType(models.TextChoices):
    IMAGE = 'IMAGE', 'Image'
    DOCUMENT = 'DOCUMENT', 'Document'
    VIDEO = 'VIDEO', 'Video'
    OTHER = 'OTHER', 'Other'


class Media(models.Model):
    """Uploaded file stored under MEDIA_ROOT/uploads"""
    filename = models.CharField(max_length=255, unique=True)
    original_name = models.CharField(max_length=255)
    url = models.CharField(max_length=500)
    thumbnail_url = models.CharField(max_length=500, blank=True, null=True)
    mime_type = models.CharField(max_length=100, db_index=True)
    size = models.PositiveIntegerField(default=0)  # bytes on disk
    type = models.CharField(max_length=20, choices=MediaType.choices, default=MediaType.OTHER, db_index=True)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='uploaded_media'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.original_name

    @property
    def is_image(self):
        return self.type == MediaType.IMAGE

    class Meta:
        db_table = 'media'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'media'
