from django.urls import path
from .views import (
    location_list_create, location_detail,
    box_list_create, box_detail
)

urlpatterns = [
    path('locations/', location_list_create, name='location-list-create'),
    path('locations/<int:pk>/', location_detail, name='location-detail'),
    path('boxes/', box_list_create, name='box-list-create'),
    path('boxes/<int:pk>/', box_detail, name='box-detail'),
]
