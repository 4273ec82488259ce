"""
File helpers for the media library

Storage layout: every upload lives flat in MEDIA_ROOT/<MEDIA_UPLOAD_SUBDIR>
and is served from MEDIA_URL + <MEDIA_UPLOAD_SUBDIR>/. Image thumbnails sit
beside the file they belong to with a `thumb_` prefix.
"""
import logging
import os
import secrets
import string
import time

from django.conf import settings

from .models import MediaType

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ['image/jpeg', 'image/png', 'image/webp']
ALLOWED_DOCUMENT_TYPES = [
    'application/pdf',
    'text/plain',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
]

UPLOAD_KINDS = {
    'image': MediaType.IMAGE,
    'document': MediaType.DOCUMENT,
}

THUMBNAIL_PREFIX = 'thumb_'

SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB']

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def max_file_size():
    return settings.MEDIA_MAX_FILE_SIZE


def max_bulk_files():
    return settings.MEDIA_MAX_BULK_FILES


def allowed_types_for(kind):
    return ALLOWED_IMAGE_TYPES if kind == 'image' else ALLOWED_DOCUMENT_TYPES


def is_image_file(mime_type):
    return mime_type in ALLOWED_IMAGE_TYPES


def is_document_file(mime_type):
    return mime_type in ALLOWED_DOCUMENT_TYPES


def infer_upload_kind(mime_type):
    """'image' or 'document' for an allowed MIME type, None otherwise"""
    if is_image_file(mime_type):
        return 'image'
    if is_document_file(mime_type):
        return 'document'
    return None


def format_file_size(size):
    """Human readable size: 0 -> "0 Bytes", 1536 -> "1.5 KB", 1048576 -> "1 MB" """
    if not size or size <= 0:
        return '0 Bytes'
    index = 0
    while size >= 1024 ** (index + 1) and index < len(SIZE_UNITS) - 1:
        index += 1
    value = round(size / 1024 ** index, 2)
    text = f'{value:.2f}'.rstrip('0').rstrip('.')
    return f'{text} {SIZE_UNITS[index]}'


def get_file_extension(filename):
    """Lower-cased extension without the dot; "" for no extension or dot-files"""
    parts = (filename or '').split('.')
    if len(parts) == 1 or (len(parts) == 2 and parts[0] == ''):
        return ''
    return parts[-1].lower()


def generate_filename(original_name, extension=None):
    """Unique stored name: <epoch-ms>-<random>.<ext>"""
    timestamp = int(time.time() * 1000)
    random_part = ''.join(secrets.choice(_RANDOM_ALPHABET) for _ in range(11))
    extension = extension if extension is not None else get_file_extension(original_name)
    if extension:
        return f'{timestamp}-{random_part}.{extension}'
    return f'{timestamp}-{random_part}'


def thumbnail_name(filename):
    return f'{THUMBNAIL_PREFIX}{filename}'


def upload_dir():
    return os.path.join(settings.MEDIA_ROOT, settings.MEDIA_UPLOAD_SUBDIR)


def ensure_upload_dir():
    path = upload_dir()
    os.makedirs(path, exist_ok=True)
    return path


def upload_path(filename):
    return os.path.join(upload_dir(), os.path.basename(filename))


def upload_url(filename):
    return f'{settings.MEDIA_URL}{settings.MEDIA_UPLOAD_SUBDIR}/{filename}'


def write_upload(filename, content):
    ensure_upload_dir()
    path = upload_path(filename)
    with open(path, 'wb') as handle:
        handle.write(content)
    return path


def remove_upload(filename):
    """Delete a stored file; a missing file is only logged"""
    path = upload_path(filename)
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        logger.warning(f"Media file already missing: {path}")
    except OSError as e:
        logger.warning(f"Failed to delete media file {path}: {e}")
    return False


def organize_media_by_type(media_items):
    """Split media into images, documents and everything else"""
    organized = {'images': [], 'documents': [], 'other': []}
    for item in media_items:
        if item.type == MediaType.IMAGE:
            organized['images'].append(item)
        elif item.type == MediaType.DOCUMENT:
            organized['documents'].append(item)
        else:
            organized['other'].append(item)
    return organized


def filter_media_by_search(media_items, search_term):
    """Case-insensitive match on original name, stored filename or MIME type"""
    term = (search_term or '').strip().lower()
    if not term:
        return list(media_items)
    return [
        item for item in media_items
        if term in item.original_name.lower()
        or term in item.filename.lower()
        or term in item.mime_type.lower()
    ]
