"""Validation and storage of a single uploaded file"""
import logging

from django.db import transaction

from .models import Media
from .processing import process_image, ImageProcessingError
from .utils import (
    UPLOAD_KINDS, allowed_types_for, ensure_upload_dir, generate_filename, max_file_size,
    remove_upload, thumbnail_name, upload_url, write_upload,
)

logger = logging.getLogger(__name__)


class UploadError(Exception):
    """Upload rejected; `message` is safe to return to the client"""

    def __init__(self, message, code='UPLOAD_REJECTED'):
        super().__init__(message)
        self.message = message
        self.code = code


def validate_upload(uploaded_file, kind):
    if kind not in UPLOAD_KINDS:
        raise UploadError('Invalid type. Must be "image" or "document"', 'INVALID_UPLOAD_TYPE')

    limit = max_file_size()
    if uploaded_file.size > limit:
        raise UploadError(f'File size exceeds {limit // (1024 * 1024)}MB limit', 'FILE_TOO_LARGE')

    mime_type = uploaded_file.content_type or ''
    if mime_type not in allowed_types_for(kind):
        raise UploadError(f'File type {mime_type} not allowed for {kind} uploads', 'INVALID_FILE_TYPE')


def store_upload(uploaded_file, kind, user=None):
    """
    Validate, optimize and persist `uploaded_file` as a Media record.

    Images are re-encoded as JPEG (so they get a .jpg name and image/jpeg
    MIME type) and get a thumbnail; documents are stored byte for byte.
    """
    validate_upload(uploaded_file, kind)
    content = uploaded_file.read()
    original_name = uploaded_file.name
    mime_type = uploaded_file.content_type
    thumbnail_url = None

    ensure_upload_dir()
    if kind == 'image':
        try:
            content, thumbnail = process_image(content)
        except ImageProcessingError as e:
            raise UploadError(str(e), 'INVALID_IMAGE') from e
        filename = generate_filename(original_name, extension='jpg')
        mime_type = 'image/jpeg'
        write_upload(thumbnail_name(filename), thumbnail)
        thumbnail_url = upload_url(thumbnail_name(filename))
    else:
        filename = generate_filename(original_name)

    write_upload(filename, content)

    try:
        with transaction.atomic():
            media = Media.objects.create(
                filename=filename,
                original_name=original_name[:255],
                url=upload_url(filename),
                thumbnail_url=thumbnail_url,
                mime_type=mime_type,
                size=len(content),
                type=UPLOAD_KINDS[kind],
                uploaded_by=user if user is not None and user.is_authenticated else None,
            )
    except Exception:
        remove_upload(filename)
        if thumbnail_url:
            remove_upload(thumbnail_name(filename))
        raise

    logger.info(f"Stored {kind} upload {filename} ({len(content)} bytes) from {original_name}")
    return media


def delete_media_files(media):
    """Remove the stored file and its thumbnail; missing files are tolerated"""
    remove_upload(media.filename)
    if media.thumbnail_url:
        remove_upload(thumbnail_name(media.filename))
