from django.urls import path
from .views import (
    product_list_create, product_detail, product_filter_options,
    product_price, product_images, product_image_detail,
)

urlpatterns = [
    path('products/', product_list_create, name='product-list-create'),
    path('products/filter-options/', product_filter_options, name='product-filter-options'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/price/', product_price, name='product-price'),
    path('products/<int:pk>/images/', product_images, name='product-images'),
    path('products/<int:pk>/images/<int:image_id>/', product_image_detail, name='product-image-detail'),
]
