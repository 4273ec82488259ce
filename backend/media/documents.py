"""
Document categories and product-document organization

A ProductDocument's `type` holds the id of one of DOCUMENT_CATEGORIES;
documents whose type is not a known category are reported as
uncategorized.
"""
import logging

from django.db import transaction

from backend.catalog.models import Product, ProductDocument
from backend.core.cache_utils import invalidate_products_cache
from backend.core.sanitizers import parse_record_id
from .models import Media, MediaType

logger = logging.getLogger(__name__)

PDF = 'application/pdf'
TEXT = 'text/plain'
MSWORD = 'application/msword'
DOCX = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
XLS = 'application/vnd.ms-excel'
XLSX = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

DOCUMENT_CATEGORIES = [
    {
        'id': 'technical-specs',
        'name': 'Technical Specifications',
        'description': 'Detailed technical specifications and engineering drawings',
        'allowed_types': [PDF, XLS, XLSX],
    },
    {
        'id': 'installation-guides',
        'name': 'Installation Guides',
        'description': 'Step-by-step installation and setup instructions',
        'allowed_types': [PDF, TEXT, MSWORD, DOCX],
    },
    {
        'id': 'safety-data',
        'name': 'Safety Data Sheets',
        'description': 'Material safety data sheets and compliance documents',
        'allowed_types': [PDF],
    },
    {
        'id': 'certifications',
        'name': 'Certifications',
        'description': 'Quality certifications and compliance certificates',
        'allowed_types': [PDF],
    },
    {
        'id': 'warranties',
        'name': 'Warranty Information',
        'description': 'Warranty terms and conditions',
        'allowed_types': [PDF, TEXT],
    },
    {
        'id': 'maintenance',
        'name': 'Maintenance Guides',
        'description': 'Maintenance schedules and procedures',
        'allowed_types': [PDF, MSWORD, DOCX],
    },
]

ASSOCIATION_FIELDS = ('media_id', 'product_id', 'category')


def get_category_by_id(category_id):
    for category in DOCUMENT_CATEGORIES:
        if category['id'] == category_id:
            return category
    return None


def get_categories_for_mime_type(mime_type):
    return [category for category in DOCUMENT_CATEGORIES if mime_type in category['allowed_types']]


def validate_document_for_category(mime_type, category_id):
    category = get_category_by_id(category_id)
    return bool(category) and mime_type in category['allowed_types']


def generate_secure_download_url(document_id, is_product_document=False):
    base_url = '/api/v1/documents' if is_product_document else '/api/v1/media'
    return f'{base_url}/{document_id}/download/'


def _product_document_entry(document):
    return {
        'id': document.id,
        'name': document.name,
        'url': document.url,
        'type': document.type,
        'product_id': document.product_id,
        'product_name': document.product.name,
        'category': document.type,
        'created_at': document.created_at,
        'secure_download_url': generate_secure_download_url(document.id, is_product_document=True),
    }


def organize_documents_by_product(product_id=None):
    """Product documents grouped by category, newest first"""
    documents = ProductDocument.objects.select_related('product').order_by('-created_at', '-id')
    if product_id is not None:
        documents = documents.filter(product_id=product_id)

    by_category = {category['id']: [] for category in DOCUMENT_CATEGORIES}
    uncategorized = []
    total = 0
    for document in documents:
        total += 1
        entry = _product_document_entry(document)
        if document.type in by_category:
            by_category[document.type].append(entry)
        else:
            uncategorized.append(entry)

    return {'by_category': by_category, 'uncategorized': uncategorized, 'total': total}


def organize_general_documents():
    """Document media grouped by MIME type"""
    documents = Media.objects.filter(type=MediaType.DOCUMENT).order_by('-created_at', '-id')
    by_type = {}
    total = 0
    for media in documents:
        total += 1
        by_type.setdefault(media.mime_type, []).append({
            'id': media.id,
            'name': media.original_name,
            'url': media.url,
            'type': 'general',
            'size': media.size,
            'mime_type': media.mime_type,
            'category': 'general',
            'created_at': media.created_at,
            'secure_download_url': generate_secure_download_url(media.id),
        })
    return {'by_type': by_type, 'total': total}


def missing_association_fields(associations):
    """Indexes of associations lacking media_id, product_id or category"""
    return [
        index for index, entry in enumerate(associations)
        if not isinstance(entry, dict) or any(not entry.get(field) for field in ASSOCIATION_FIELDS)
    ]


def bulk_associate_documents(associations):
    """
    Link document media to products, one association at a time.

    A failing association is recorded in `errors` and does not stop the
    others. Returns {successful, failed, errors, created}.
    """
    results = {'successful': 0, 'failed': 0, 'errors': [], 'created': []}

    for association in associations:
        media_id = association['media_id']
        product_id = association['product_id']
        category = association['category']

        media = Media.objects.filter(pk=parse_record_id(media_id)).first()
        if media is None or media.type != MediaType.DOCUMENT:
            results['failed'] += 1
            results['errors'].append(f'Invalid media ID: {media_id}')
            continue

        product = Product.objects.filter(pk=parse_record_id(product_id)).first()
        if product is None:
            results['failed'] += 1
            results['errors'].append(f'Product not found: {product_id}')
            continue

        if not validate_document_for_category(media.mime_type, category):
            results['failed'] += 1
            results['errors'].append(f'Invalid category {category} for file type {media.mime_type}')
            continue

        try:
            with transaction.atomic():
                document = ProductDocument.objects.create(
                    product=product,
                    media=media,
                    name=(association.get('name') or media.original_name)[:255],
                    url=media.url,
                    type=category,
                )
        except Exception as e:
            logger.error(f"Failed to associate media {media_id} with product {product_id}: {e}", exc_info=True)
            results['failed'] += 1
            results['errors'].append(f'Failed to associate media {media_id} with product {product_id}')
            continue

        results['successful'] += 1
        results['created'].append(document)

    return results


def recategorize_documents(document_ids, category_id):
    """Set the category of the given product documents; returns the update count"""
    ids = [parse_record_id(document_id) for document_id in document_ids]
    ids = [document_id for document_id in ids if document_id is not None]
    if not ids:
        return 0
    updated = ProductDocument.objects.filter(pk__in=ids).update(type=category_id)
    # queryset.update() bypasses the post_save cache signals
    if updated:
        invalidate_products_cache()
    return updated
