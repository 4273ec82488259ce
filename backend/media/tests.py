"""
Test suite for the media module
Tests: upload validation and image optimization, bulk uploads, media
library listing, downloads, document categories and product documents
"""
import io
import os
import re
import shutil
import tempfile
from unittest.mock import patch

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from PIL import Image
from rest_framework import status

from backend.catalog.models import ProductDocument
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.throttling import UploadThrottle
from .documents import (
    get_categories_for_mime_type, validate_document_for_category, generate_secure_download_url,
    missing_association_fields,
)
from .management.commands.cleanup_orphan_media import find_orphan_files
from .models import Media, MediaType
from .utils import (
    format_file_size, get_file_extension, generate_filename, infer_upload_kind, upload_path,
    write_upload, organize_media_by_type, filter_media_by_search,
)


class TempMediaRootMixin:
    """Point MEDIA_ROOT at a throwaway directory for the test"""

    def use_temp_media_root(self):
        self.media_root = tempfile.mkdtemp()
        override = override_settings(MEDIA_ROOT=self.media_root)
        override.enable()
        self.addCleanup(override.disable)
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)


class MediaUtilsTests(TestCase):
    """Test file naming and formatting helpers"""

    def test_format_file_size(self):
        self.assertEqual(format_file_size(0), '0 Bytes')
        self.assertEqual(format_file_size(512), '512 Bytes')
        self.assertEqual(format_file_size(1024), '1 KB')
        self.assertEqual(format_file_size(1536), '1.5 KB')
        self.assertEqual(format_file_size(1048576), '1 MB')
        self.assertEqual(format_file_size(5 * 1024 ** 4), '5120 GB')

    def test_get_file_extension(self):
        self.assertEqual(get_file_extension('Report.PDF'), 'pdf')
        self.assertEqual(get_file_extension('archive.tar.gz'), 'gz')
        self.assertEqual(get_file_extension('README'), '')
        self.assertEqual(get_file_extension('.env'), '')

    def test_generate_filename(self):
        name = generate_filename('Spec Sheet.PDF')
        self.assertRegex(name, r'^\d{13}-[a-z0-9]{11}\.pdf$')
        self.assertNotEqual(name, generate_filename('Spec Sheet.PDF'))
        self.assertTrue(generate_filename('photo.png', extension='jpg').endswith('.jpg'))
        self.assertNotIn('.', generate_filename('README'))

    def test_infer_upload_kind(self):
        self.assertEqual(infer_upload_kind('image/png'), 'image')
        self.assertEqual(infer_upload_kind('application/pdf'), 'document')
        self.assertIsNone(infer_upload_kind('application/zip'))

    def test_organize_and_search(self):
        image = TestDataFactory.create_media(MediaType.IMAGE, 'image/jpeg', original_name='Elbow.jpg')
        document = TestDataFactory.create_media(original_name='Pressure Chart.pdf')
        video = TestDataFactory.create_media(MediaType.VIDEO, 'video/mp4', original_name='install.mp4')

        organized = organize_media_by_type([image, document, video])
        self.assertEqual(organized, {'images': [image], 'documents': [document], 'other': [video]})
        self.assertEqual(filter_media_by_search([image, document, video], 'CHART'), [document])
        self.assertEqual(filter_media_by_search([image, document], 'video/'), [])
        self.assertEqual(len(filter_media_by_search([image, document], '  ')), 2)


class DocumentCategoryTests(TestCase):
    """Test document category helpers"""

    def test_categories_for_mime_type(self):
        ids = [category['id'] for category in get_categories_for_mime_type('text/plain')]
        self.assertEqual(ids, ['installation-guides', 'warranties'])
        self.assertEqual(get_categories_for_mime_type('image/png'), [])

    def test_validate_document_for_category(self):
        self.assertTrue(validate_document_for_category('application/pdf', 'safety-data'))
        self.assertFalse(validate_document_for_category('text/plain', 'safety-data'))
        self.assertFalse(validate_document_for_category('application/pdf', 'brochures'))

    def test_secure_download_urls(self):
        self.assertEqual(generate_secure_download_url(4, is_product_document=True), '/api/v1/documents/4/download/')
        self.assertEqual(generate_secure_download_url(4), '/api/v1/media/4/download/')

    def test_missing_association_fields(self):
        associations = [
            {'media_id': 1, 'product_id': 2, 'category': 'warranties'},
            {'media_id': 1, 'category': 'warranties'},
            'not-a-dict',
        ]
        self.assertEqual(missing_association_fields(associations), [1, 2])


class MediaUploadTests(TempMediaRootMixin, TestCase):
    """Test single and bulk uploads"""

    def setUp(self):
        cache.clear()
        self.use_temp_media_root()
        self.manager = TestDataFactory.create_content_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def upload(self, file, kind):
        return self.client.post('/api/v1/media/upload/', {'file': file, 'type': kind}, format='multipart')

    def test_upload_requires_media_permission(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.upload(TestDataFactory.pdf_upload(), 'document')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_upload_image_is_optimized_with_thumbnail(self):
        response = self.upload(TestDataFactory.image_upload('Elbow Joint.png'), 'image')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['original_name'], 'Elbow Joint.png')
        self.assertEqual(response.data['type'], MediaType.IMAGE)
        self.assertTrue(response.data['filename'].endswith('.jpg'))
        self.assertEqual(response.data['url'], f"/media/uploads/{response.data['filename']}")
        self.assertEqual(response.data['thumbnail_url'], f"/media/uploads/thumb_{response.data['filename']}")

        media = Media.objects.get(pk=response.data['id'])
        self.assertEqual(media.mime_type, 'image/jpeg')
        self.assertEqual(media.uploaded_by, self.manager)
        self.assertEqual(media.size, os.path.getsize(upload_path(media.filename)))

        with Image.open(upload_path(media.filename)) as stored:
            self.assertEqual(stored.size, (1200, 675))
            self.assertEqual(stored.format, 'JPEG')
        with Image.open(upload_path(f'thumb_{media.filename}')) as thumbnail:
            self.assertEqual(thumbnail.size, (300, 300))

        self.assertTrue(AuditLog.objects.filter(action='UPLOAD', object_id=str(media.id)).exists())

    def test_small_image_is_not_enlarged(self):
        response = self.upload(TestDataFactory.image_upload(width=400, height=200), 'image')
        media = Media.objects.get(pk=response.data['id'])
        with Image.open(upload_path(media.filename)) as stored:
            self.assertEqual(stored.size, (400, 200))

    def test_upload_document_is_stored_unchanged(self):
        response = self.upload(TestDataFactory.pdf_upload('Data Sheet.pdf'), 'document')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['thumbnail_url'])
        self.assertEqual(response.data['size'], len(b'%PDF-1.4 test document'))
        with open(upload_path(response.data['filename']), 'rb') as handle:
            self.assertEqual(handle.read(), b'%PDF-1.4 test document')

    def test_upload_without_file(self):
        response = self.client.post('/api/v1/media/upload/', {'type': 'image'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No file provided')

    def test_upload_rejections(self):
        response = self.upload(TestDataFactory.pdf_upload(), 'video')
        self.assertEqual(response.data['code'], 'INVALID_UPLOAD_TYPE')

        response = self.upload(TestDataFactory.pdf_upload(), 'image')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'INVALID_FILE_TYPE')
        self.assertEqual(response.data['error'], 'File type application/pdf not allowed for image uploads')

        fake_png = SimpleUploadedFile('broken.png', b'not really a png', content_type='image/png')
        response = self.upload(fake_png, 'image')
        self.assertEqual(response.data['code'], 'INVALID_IMAGE')
        self.assertEqual(Media.objects.count(), 0)

    @override_settings(MEDIA_MAX_FILE_SIZE=1024 * 1024)
    def test_upload_too_large(self):
        big = TestDataFactory.pdf_upload(content=b'%PDF' + b'0' * (1024 * 1024))
        response = self.upload(big, 'document')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'FILE_TOO_LARGE')
        self.assertEqual(response.data['error'], 'File size exceeds 1MB limit')

    @patch.object(Image, 'MAX_IMAGE_PIXELS', 1000)
    def test_oversized_image_is_rejected(self):
        # 100x100 exceeds twice the pixel limit, 50x30 only the limit itself
        for width, height in ((100, 100), (50, 30)):
            response = self.upload(TestDataFactory.image_upload('huge.png', width, height), 'image')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['code'], 'INVALID_IMAGE')
        self.assertEqual(Media.objects.count(), 0)

    @patch.object(Image, 'MAX_IMAGE_PIXELS', 1000)
    def test_bulk_upload_survives_oversized_image(self):
        files = [TestDataFactory.pdf_upload('ok.pdf'), TestDataFactory.image_upload('huge.png', 100, 100)]
        response = self.client.post('/api/v1/media/bulk-upload/', {'files': files}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['summary'], {'total': 2, 'successful': 1, 'failed': 1})
        self.assertEqual(response.data['results'][1]['error'], 'File is not a valid image')

    def test_bulk_upload_records_unexpected_storage_errors(self):
        files = [TestDataFactory.pdf_upload('a.pdf')]
        with patch('backend.media.views.store_upload', side_effect=OSError('disk full')):
            response = self.client.post('/api/v1/media/bulk-upload/', {'files': files}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['results'][0]['error'], 'Failed to store file')

    @patch.object(UploadThrottle, 'rate', '1/15m', create=True)
    def test_uploads_are_rate_limited(self):
        self.assertEqual(self.upload(TestDataFactory.pdf_upload(), 'document').status_code, status.HTTP_201_CREATED)
        response = self.upload(TestDataFactory.pdf_upload(), 'document')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(Media.objects.count(), 1)

    def test_bulk_upload_handles_files_independently(self):
        files = [
            TestDataFactory.image_upload('a.png', 200, 200),
            TestDataFactory.pdf_upload('b.pdf'),
            SimpleUploadedFile('c.zip', b'PK', content_type='application/zip'),
        ]
        response = self.client.post('/api/v1/media/bulk-upload/', {'files': files}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['summary'], {'total': 3, 'successful': 2, 'failed': 1})
        self.assertEqual([result['success'] for result in response.data['results']], [True, True, False])
        self.assertEqual(response.data['results'][2]['error'], 'File type application/zip not allowed')
        self.assertEqual(len(response.data['uploaded_media']), 2)
        self.assertEqual(
            sorted(Media.objects.values_list('type', flat=True)),
            [MediaType.DOCUMENT, MediaType.IMAGE],
        )

    def test_bulk_upload_with_explicit_kind(self):
        files = [TestDataFactory.pdf_upload('a.pdf'), TestDataFactory.image_upload('b.png', 50, 50)]
        response = self.client.post(
            '/api/v1/media/bulk-upload/', {'files': files, 'type': 'document'}, format='multipart',
        )
        self.assertEqual(response.data['summary']['successful'], 1)
        self.assertIn('not allowed for document uploads', response.data['results'][1]['error'])

    def test_bulk_upload_all_failed(self):
        files = [SimpleUploadedFile('c.zip', b'PK', content_type='application/zip')]
        response = self.client.post('/api/v1/media/bulk-upload/', {'files': files}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['summary']['failed'], 1)

    @override_settings(MEDIA_MAX_BULK_FILES=2)
    def test_bulk_upload_limits(self):
        files = [TestDataFactory.pdf_upload(f'{index}.pdf') for index in range(3)]
        response = self.client.post('/api/v1/media/bulk-upload/', {'files': files}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Maximum 2 files allowed per upload')

        response = self.client.post('/api/v1/media/bulk-upload/', {}, format='multipart')
        self.assertEqual(response.data['error'], 'No files provided')


class MediaLibraryTests(TempMediaRootMixin, TestCase):
    """Test listing, retrieving, deleting and downloading media"""

    def setUp(self):
        cache.clear()
        self.use_temp_media_root()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_content_manager())

    def stored_document(self, name='Catalog.pdf', content=b'%PDF-1.4 catalog'):
        response = self.client.post(
            '/api/v1/media/upload/',
            {'file': TestDataFactory.pdf_upload(name, content), 'type': 'document'},
            format='multipart',
        )
        return Media.objects.get(pk=response.data['id'])

    def test_list_filters_by_type_and_search(self):
        TestDataFactory.create_media(MediaType.IMAGE, 'image/jpeg', original_name='Flange.jpg')
        TestDataFactory.create_media(original_name='Flange Specs.pdf')
        TestDataFactory.create_media(original_name='Warranty.pdf')

        response = self.client.get('/api/v1/media/?type=document')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

        response = self.client.get('/api/v1/media/?search=flange')
        self.assertEqual(len(response.data['media']), 2)

        response = self.client.get('/api/v1/media/?type=audio')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['code'], 'INVALID_MEDIA_TYPE')

    def test_list_requires_authentication(self):
        self.client.logout()
        self.assertEqual(self.client.get('/api/v1/media/').status_code, status.HTTP_401_UNAUTHORIZED)

    def test_detail_is_public(self):
        media = TestDataFactory.create_media(size=1536)
        self.client.logout()
        response = self.client.get(f'/api/v1/media/{media.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['size_display'], '1.5 KB')

    def test_delete_removes_files(self):
        response = self.client.post(
            '/api/v1/media/upload/', {'file': TestDataFactory.image_upload(), 'type': 'image'}, format='multipart',
        )
        media = Media.objects.get(pk=response.data['id'])

        response = self.client.delete(f'/api/v1/media/{media.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Media.objects.filter(pk=media.pk).exists())
        self.assertFalse(os.path.exists(upload_path(media.filename)))
        self.assertFalse(os.path.exists(upload_path(f'thumb_{media.filename}')))

    def test_delete_tolerates_missing_file(self):
        media = TestDataFactory.create_media()
        response = self.client.delete(f'/api/v1/media/{media.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_delete_requires_permission(self):
        media = TestDataFactory.create_media()
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.delete(f'/api/v1/media/{media.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_download_streams_attachment(self):
        media = self.stored_document('Pipe Catalog.pdf')
        response = self.client.get(f'/api/v1/media/{media.id}/download/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attachment', response['Content-Disposition'])
        self.assertIn('Pipe Catalog.pdf', response['Content-Disposition'])
        self.assertEqual(response['Cache-Control'], 'private, no-cache')
        self.assertEqual(b''.join(response.streaming_content), b'%PDF-1.4 catalog')
        response.close()
        self.assertTrue(AuditLog.objects.filter(action='DOWNLOAD', model_name='Media').exists())

    def test_download_missing_file(self):
        media = TestDataFactory.create_media()
        response = self.client.get(f'/api/v1/media/{media.id}/download/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'File not found on disk')

    def test_download_requires_authentication(self):
        media = TestDataFactory.create_media()
        self.client.logout()
        response = self.client.get(f'/api/v1/media/{media.id}/download/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_cleanup_orphan_media(self):
        media = self.stored_document()
        write_upload('orphan.pdf', b'x')
        write_upload(f'thumb_{media.filename}', b'x')
        write_upload('thumb_gone.jpg', b'x')

        self.assertEqual(find_orphan_files(), ['orphan.pdf', 'thumb_gone.jpg'])

        out = io.StringIO()
        call_command('cleanup_orphan_media', stdout=out)
        self.assertTrue(os.path.exists(upload_path('orphan.pdf')))

        call_command('cleanup_orphan_media', '--delete', stdout=out)
        self.assertIn('Removed 2 of 2 orphan files', out.getvalue())
        self.assertFalse(os.path.exists(upload_path('orphan.pdf')))
        self.assertTrue(os.path.exists(upload_path(media.filename)))


class DocumentEndpointTests(TempMediaRootMixin, TestCase):
    """Test document registration, categories and product document organization"""

    def setUp(self):
        cache.clear()
        self.use_temp_media_root()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_content_manager())
        self.product = TestDataFactory.create_product(name='Steel Pipe 2"')
        self.pdf = TestDataFactory.create_media(original_name='Spec.pdf')

    def test_register_external_document(self):
        response = self.client.post('/api/v1/documents/', {
            'url': 'https://cdn.pipesupply.com/manual.pdf',
            'original_name': 'Manual.pdf',
            'mime_type': 'application/pdf',
            'size': 2048,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['type'], MediaType.DOCUMENT)
        self.assertTrue(re.match(r'^\d{13}-[a-z0-9]{11}\.pdf$', response.data['filename']))

        response = self.client.get('/api/v1/documents/')
        self.assertEqual(response.data['pagination']['limit'], 10)
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_register_rejects_non_document_type(self):
        response = self.client.post('/api/v1/documents/', {
            'url': 'https://cdn.pipesupply.com/a.png', 'original_name': 'a.png', 'mime_type': 'image/png',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['field'], 'mime_type')

    def test_categories_are_public(self):
        self.client.logout()
        response = self.client.get('/api/v1/documents/categories/')
        self.assertEqual(len(response.data['categories']), 6)
        response = self.client.get('/api/v1/documents/categories/?mime_type=application/vnd.ms-excel')
        self.assertEqual([c['id'] for c in response.data['categories']], ['technical-specs'])

    def test_organized_documents(self):
        TestDataFactory.create_product_document(self.product, self.pdf, category='technical-specs')
        TestDataFactory.create_product_document(self.product, category='brochure', name='Old brochure')
        other = TestDataFactory.create_product()
        TestDataFactory.create_product_document(other, category='warranties')

        response = self.client.get(f'/api/v1/documents/organized/?product={self.product.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['by_category']['warranties'], [])
        entry = response.data['by_category']['technical-specs'][0]
        self.assertEqual(entry['product_name'], 'Steel Pipe 2"')
        self.assertEqual(entry['secure_download_url'], f"/api/v1/documents/{entry['id']}/download/")
        self.assertEqual(response.data['uncategorized'][0]['name'], 'Old brochure')

        self.assertEqual(self.client.get('/api/v1/documents/organized/').data['total'], 3)

        response = self.client.get('/api/v1/documents/organized/?product=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_document_endpoints_reject_malformed_input(self):
        response = self.client.get('/api/v1/documents/organized/', {'product': '\u00b2'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/documents/organize/', ['warranties'], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/documents/bulk-associate/', [{'media_id': 1}], format='json')
        self.assertEqual(response.data['error'], 'No associations provided')

        document = TestDataFactory.create_product_document(self.product, self.pdf)
        response = self.client.post('/api/v1/documents/organize/', {
            'document_ids': ['\u00b2', 10 ** 20], 'category': 'warranties',
        }, format='json')
        self.assertEqual(response.data['organized'], 0)
        document.refresh_from_db()
        self.assertEqual(document.type, 'technical-specs')

    def test_general_documents_grouped_by_mime_type(self):
        TestDataFactory.create_media(mime_type='text/plain', original_name='notes.txt')
        TestDataFactory.create_media(MediaType.IMAGE, 'image/png')
        response = self.client.get('/api/v1/documents/general/')
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(sorted(response.data['by_type'].keys()), ['application/pdf', 'text/plain'])
        self.assertEqual(
            response.data['by_type']['application/pdf'][0]['secure_download_url'],
            f'/api/v1/media/{self.pdf.id}/download/',
        )

    def test_organize_documents(self):
        document = TestDataFactory.create_product_document(self.product, self.pdf)
        response = self.client.post('/api/v1/documents/organize/', {
            'document_ids': [document.id], 'category': 'warranties',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['organized'], 1)
        document.refresh_from_db()
        self.assertEqual(document.type, 'warranties')

    def test_organize_documents_validation(self):
        response = self.client.post('/api/v1/documents/organize/', {
            'document_ids': [], 'category': 'brochures',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        codes = [error['code'] for error in response.data['validation_errors']]
        self.assertEqual(codes, ['INVALID_DOCUMENT_IDS', 'INVALID_CATEGORY'])

    def test_bulk_associate(self):
        image = TestDataFactory.create_media(MediaType.IMAGE, 'image/jpeg')
        text = TestDataFactory.create_media(mime_type='text/plain')
        response = self.client.post('/api/v1/documents/bulk-associate/', {'associations': [
            {'media_id': self.pdf.id, 'product_id': self.product.id, 'category': 'technical-specs', 'name': 'Spec sheet'},
            {'media_id': image.id, 'product_id': self.product.id, 'category': 'technical-specs'},
            {'media_id': self.pdf.id, 'product_id': 999999, 'category': 'technical-specs'},
            {'media_id': text.id, 'product_id': self.product.id, 'category': 'safety-data'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary'], {'total': 4, 'successful': 1, 'failed': 3})
        self.assertEqual(response.data['errors'], [
            f'Invalid media ID: {image.id}',
            'Product not found: 999999',
            'Invalid category safety-data for file type text/plain',
        ])
        self.assertEqual(response.data['message'], 'Successfully associated 1 documents. 3 failed.')

        document = ProductDocument.objects.get()
        self.assertEqual(document.name, 'Spec sheet')
        self.assertEqual(document.media, self.pdf)
        self.assertTrue(AuditLog.objects.filter(action='CREATE', model_name='ProductDocument').exists())

    def test_bulk_associate_requires_complete_entries(self):
        response = self.client.post('/api/v1/documents/bulk-associate/', {'associations': [
            {'media_id': self.pdf.id, 'product_id': self.product.id, 'category': 'technical-specs'},
            {'media_id': self.pdf.id, 'product_id': self.product.id},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['invalid_indexes'], [1])
        self.assertEqual(ProductDocument.objects.count(), 0)

        response = self.client.post('/api/v1/documents/bulk-associate/', {'associations': []}, format='json')
        self.assertEqual(response.data['error'], 'No associations provided')

    def test_document_download_redirects_without_local_file(self):
        document = TestDataFactory.create_product_document(self.product)
        response = self.client.get(f'/api/v1/documents/{document.id}/download/')
        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(response['Location'], '/media/uploads/spec.pdf')

    def test_document_download_streams_local_file(self):
        write_upload(self.pdf.filename, b'%PDF-1.4 spec')
        document = TestDataFactory.create_product_document(self.product, self.pdf)
        response = self.client.get(f'/api/v1/documents/{document.id}/download/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(b''.join(response.streaming_content), b'%PDF-1.4 spec')
        response.close()
