from django.urls import path
from .views import (
    media_list, media_upload, media_bulk_upload, media_detail, media_download,
    document_list_create, document_categories, documents_organized, documents_general,
    documents_organize, documents_bulk_associate, document_download,
)

urlpatterns = [
    # Media library
    path('media/', media_list, name='media-list'),
    path('media/upload/', media_upload, name='media-upload'),
    path('media/bulk-upload/', media_bulk_upload, name='media-bulk-upload'),
    path('media/<int:pk>/', media_detail, name='media-detail'),
    path('media/<int:pk>/download/', media_download, name='media-download'),

    # Documents
    path('documents/', document_list_create, name='document-list-create'),
    path('documents/categories/', document_categories, name='document-categories'),
    path('documents/organized/', documents_organized, name='documents-organized'),
    path('documents/general/', documents_general, name='documents-general'),
    path('documents/organize/', documents_organize, name='documents-organize'),
    path('documents/bulk-associate/', documents_bulk_associate, name='documents-bulk-associate'),
    path('documents/<int:pk>/download/', document_download, name='document-download'),
]
