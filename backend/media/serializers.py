from rest_framework import serializers

from .models import Media, MediaType
from .utils import format_file_size, generate_filename, ALLOWED_DOCUMENT_TYPES


class MediaSerializer(serializers.ModelSerializer):
    uploaded_by_email = serializers.EmailField(source='uploaded_by.email', read_only=True, default=None)
    size_display = serializers.SerializerMethodField()

    class Meta:
        model = Media
        fields = [
            'id', 'filename', 'original_name', 'url', 'thumbnail_url', 'mime_type',
            'size', 'size_display', 'type', 'uploaded_by', 'uploaded_by_email',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_size_display(self, obj):
        return format_file_size(obj.size)


class UploadResultSerializer(serializers.ModelSerializer):
    """Response body of a single upload"""

    class Meta:
        model = Media
        fields = ['id', 'url', 'filename', 'original_name', 'size', 'type', 'thumbnail_url']
        read_only_fields = fields


class DocumentCreateSerializer(serializers.Serializer):
    """Register an externally hosted document by URL"""
    url = serializers.CharField(max_length=500)
    original_name = serializers.CharField(max_length=255)
    mime_type = serializers.ChoiceField(choices=ALLOWED_DOCUMENT_TYPES)
    size = serializers.IntegerField(min_value=0, max_value=2147483647, required=False, default=0)
    filename = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_filename(self, value):
        if value and Media.objects.filter(filename=value).exists():
            raise serializers.ValidationError('A media record with this filename already exists.')
        return value

    def create(self, validated_data):
        if not validated_data.get('filename'):
            validated_data['filename'] = generate_filename(validated_data['original_name'])
        return Media.objects.create(type=MediaType.DOCUMENT, **validated_data)
