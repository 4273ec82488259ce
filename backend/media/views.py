import logging
import os

from django.db.models import Q
from django.http import FileResponse
from django.shortcuts import get_object_or_404, redirect
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from backend.catalog.models import ProductDocument
from backend.core.exceptions import validation_error_response, error_response
from backend.core.pagination import paginate_queryset
from backend.core.permissions import CanManageMedia, CanManageMediaOrReadOnly
from backend.core.sanitizers import parse_record_id, sanitize_search_query
from backend.core.throttling import UploadThrottle
from backend.core.utils import create_audit_log
from .documents import (
    DOCUMENT_CATEGORIES, bulk_associate_documents, get_categories_for_mime_type, get_category_by_id,
    missing_association_fields, organize_documents_by_product, organize_general_documents,
    recategorize_documents,
)
from .models import Media, MediaType
from .serializers import MediaSerializer, UploadResultSerializer, DocumentCreateSerializer
from .uploads import UploadError, store_upload, delete_media_files
from .utils import UPLOAD_KINDS, infer_upload_kind, max_bulk_files, upload_path

logger = logging.getLogger(__name__)


def _media_audit_data(media):
    return {
        'filename': media.filename,
        'original_name': media.original_name,
        'url': media.url,
        'mime_type': media.mime_type,
        'size': media.size,
        'type': media.type,
    }


def _file_response(path, content_type, download_name):
    response = FileResponse(open(path, 'rb'), as_attachment=True, filename=download_name, content_type=content_type)
    response['Cache-Control'] = 'private, no-cache'
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageMedia])
def media_list(request):
    """Media library filtered by `type` and `search`, newest first"""
    queryset = Media.objects.select_related('uploaded_by').order_by('-created_at', '-id')

    media_type = (request.query_params.get('type') or '').upper()
    if media_type:
        if media_type not in MediaType.values:
            return validation_error_response([{
                'field': 'type',
                'message': f"Type must be one of: {', '.join(MediaType.values)}",
                'code': 'INVALID_MEDIA_TYPE',
            }])
        queryset = queryset.filter(type=media_type)

    search = sanitize_search_query(request.query_params.get('search'))
    if search:
        queryset = queryset.filter(
            Q(original_name__icontains=search) |
            Q(filename__icontains=search) |
            Q(mime_type__icontains=search)
        )

    items, pagination = paginate_queryset(queryset, request.query_params)
    return Response({
        'media': MediaSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageMedia])
@throttle_classes([UploadThrottle])
def media_upload(request):
    """Upload one file (`file`) as an image or a document (`type`)"""
    uploaded_file = request.FILES.get('file')
    if uploaded_file is None:
        return error_response('No file provided', status.HTTP_400_BAD_REQUEST)

    kind = (request.data.get('type') or '').strip().lower()
    try:
        media = store_upload(uploaded_file, kind, user=request.user)
    except UploadError as e:
        logger.warning(f"Upload rejected for {request.user.email}: {e.message}")
        return error_response(e.message, status.HTTP_400_BAD_REQUEST, code=e.code)

    create_audit_log(
        request=request,
        action='UPLOAD',
        model_name='Media',
        object_id=media.id,
        object_name=media.original_name,
        new_data=_media_audit_data(media),
    )
    return Response(UploadResultSerializer(media).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageMedia])
@throttle_classes([UploadThrottle])
def media_bulk_upload(request):
    """
    Upload several files (`files`) in one request.

    Each file succeeds or fails on its own; `type` applies to every file
    when given, otherwise each file's kind is inferred from its MIME type.
    """
    files = request.FILES.getlist('files')
    if not files:
        return error_response('No files provided', status.HTTP_400_BAD_REQUEST)

    limit = max_bulk_files()
    if len(files) > limit:
        return error_response(f'Maximum {limit} files allowed per upload', status.HTTP_400_BAD_REQUEST)

    requested_kind = (request.data.get('type') or '').strip().lower()
    if requested_kind and requested_kind not in UPLOAD_KINDS:
        return error_response('Invalid type. Must be "image" or "document"', status.HTTP_400_BAD_REQUEST)

    results = []
    uploaded = []
    for uploaded_file in files:
        kind = requested_kind or infer_upload_kind(uploaded_file.content_type)
        if kind is None:
            results.append({
                'success': False,
                'original_name': uploaded_file.name,
                'error': f'File type {uploaded_file.content_type} not allowed',
            })
            continue
        try:
            media = store_upload(uploaded_file, kind, user=request.user)
        except UploadError as e:
            results.append({'success': False, 'original_name': uploaded_file.name, 'error': e.message})
            continue
        except Exception:
            logger.exception(f"Bulk upload of {uploaded_file.name} failed")
            results.append({'success': False, 'original_name': uploaded_file.name, 'error': 'Failed to store file'})
            continue

        create_audit_log(
            request=request,
            action='UPLOAD',
            model_name='Media',
            object_id=media.id,
            object_name=media.original_name,
            new_data=_media_audit_data(media),
        )
        media_data = MediaSerializer(media).data
        uploaded.append(media_data)
        results.append({
            'success': True,
            'original_name': uploaded_file.name,
            'filename': media.filename,
            'media': media_data,
        })

    successful = len(uploaded)
    logger.info(f"Bulk upload by {request.user.email}: {successful}/{len(files)} stored")
    return Response({
        'summary': {
            'total': len(files),
            'successful': successful,
            'failed': len(files) - successful,
        },
        'results': results,
        'uploaded_media': uploaded,
    }, status=status.HTTP_201_CREATED if successful else status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'DELETE'])
@permission_classes([CanManageMediaOrReadOnly])
def media_detail(request, pk):
    """Retrieve (public) or delete a media record and its files"""
    media = get_object_or_404(Media, pk=pk)

    if request.method == 'GET':
        return Response(MediaSerializer(media).data)

    old_data = _media_audit_data(media)
    media_id, media_name = media.id, media.original_name
    delete_media_files(media)
    media.delete()
    create_audit_log(
        request=request,
        action='DELETE',
        model_name='Media',
        object_id=media_id,
        object_name=media_name,
        old_data=old_data,
    )
    return Response({'message': 'Media deleted successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def media_download(request, pk):
    """Stream a stored file as an attachment under its original name"""
    media = get_object_or_404(Media, pk=pk)
    path = upload_path(media.filename)
    if not os.path.exists(path):
        logger.warning(f"Media {media.id} file missing on disk: {path}")
        return error_response('File not found on disk', status.HTTP_404_NOT_FOUND)

    create_audit_log(
        request=request,
        action='DOWNLOAD',
        model_name='Media',
        object_id=media.id,
        object_name=media.original_name,
        changes={},
    )
    return _file_response(path, media.mime_type, media.original_name)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, CanManageMedia])
def document_list_create(request):
    """Document media, paginated; POST registers a document hosted elsewhere"""
    if request.method == 'GET':
        queryset = Media.objects.filter(type=MediaType.DOCUMENT).order_by('-created_at', '-id')
        items, pagination = paginate_queryset(queryset, request.query_params, default_limit=10)
        return Response({
            'documents': MediaSerializer(items, many=True).data,
            'pagination': pagination,
        })

    serializer = DocumentCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    media = serializer.save(uploaded_by=request.user)
    create_audit_log(
        request=request,
        action='CREATE',
        model_name='Media',
        object_id=media.id,
        object_name=media.original_name,
        new_data=_media_audit_data(media),
    )
    return Response(MediaSerializer(media).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([AllowAny])
def document_categories(request):
    """Document categories, optionally only those accepting ?mime_type="""
    mime_type = request.query_params.get('mime_type')
    categories = get_categories_for_mime_type(mime_type) if mime_type else DOCUMENT_CATEGORIES
    return Response({'categories': categories})


@api_view(['GET'])
@permission_classes([AllowAny])
def documents_organized(request):
    """Product documents grouped by category, optionally for one ?product="""
    product = request.query_params.get('product')
    product_id = parse_record_id(product) if product else None
    if product and product_id is None:
        return validation_error_response([{
            'field': 'product', 'message': 'Product must be a valid id', 'code': 'INVALID_PRODUCT_ID',
        }])
    return Response(organize_documents_by_product(product_id))


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanManageMedia])
def documents_general(request):
    return Response(organize_general_documents())


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageMedia])
def documents_organize(request):
    """Move product documents {document_ids} into {category}"""
    payload = request.data if isinstance(request.data, dict) else {}
    document_ids = payload.get('document_ids')
    category_id = payload.get('category')

    errors = []
    if not isinstance(document_ids, list) or not document_ids:
        errors.append({
            'field': 'document_ids', 'message': 'document_ids must be a non-empty array', 'code': 'INVALID_DOCUMENT_IDS',
        })
    if get_category_by_id(category_id) is None:
        errors.append({'field': 'category', 'message': f'Unknown category: {category_id}', 'code': 'INVALID_CATEGORY'})
    if errors:
        return validation_error_response(errors)

    organized = recategorize_documents(document_ids, category_id)
    logger.info(f"{request.user.email} moved {organized} documents to {category_id}")
    return Response({'message': 'Documents organized successfully', 'organized': organized})


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageMedia])
def documents_bulk_associate(request):
    """Attach document media to products: {associations: [{media_id, product_id, category, name?}]}"""
    payload = request.data if isinstance(request.data, dict) else {}
    associations = payload.get('associations')
    if not isinstance(associations, list) or not associations:
        return error_response('No associations provided', status.HTTP_400_BAD_REQUEST)

    incomplete = missing_association_fields(associations)
    if incomplete:
        return error_response(
            'Each association must have media_id, product_id, and category',
            status.HTTP_400_BAD_REQUEST,
            invalid_indexes=incomplete,
        )

    results = bulk_associate_documents(associations)
    for document in results['created']:
        create_audit_log(
            request=request,
            action='CREATE',
            model_name='ProductDocument',
            object_id=document.id,
            object_name=document.name,
            new_data={'product_id': document.product_id, 'media_id': document.media_id, 'type': document.type},
        )

    return Response({
        'summary': {
            'total': len(associations),
            'successful': results['successful'],
            'failed': results['failed'],
        },
        'errors': results['errors'],
        'message': f"Successfully associated {results['successful']} documents. {results['failed']} failed.",
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def document_download(request, pk):
    """Download a product document from its linked media file, or redirect to its URL"""
    document = get_object_or_404(ProductDocument.objects.select_related('media'), pk=pk)

    create_audit_log(
        request=request,
        action='DOWNLOAD',
        model_name='ProductDocument',
        object_id=document.id,
        object_name=document.name,
        changes={},
    )

    media = document.media
    if media is not None:
        path = upload_path(media.filename)
        if os.path.exists(path):
            return _file_response(path, media.mime_type, media.original_name)
    return redirect(document.url)
