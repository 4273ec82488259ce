from django.urls import path
from .views import quote_list_create, quote_detail

urlpatterns = [
    path('quotes/', quote_list_create, name='quote-list-create'),
    path('quotes/<int:pk>/', quote_detail, name='quote-detail'),
]
