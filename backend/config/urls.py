"""
URL configuration for the pipe supply backend.

Every JSON endpoint lives under /api/v1/; the Django admin is kept for
back-office data fixes.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Pipe Supply Administration"
admin.site.site_title = "Pipe Supply Admin Portal"
admin.site.index_title = "Catalog, quotes and media"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.quotes.urls')),
    path('api/v1/', include('backend.media.urls')),
    path('api/v1/', include('backend.reports.urls')),
]

if settings.SERVE_MEDIA_FILES:
    urlpatterns += [
        re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
        re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
    ]
