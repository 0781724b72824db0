from django.urls import path
from .views import (
    stock_item_list, stock_item_detail, stock_summary,
    item_movement_list_create, stock_movement_list, seeded_items
)

urlpatterns = [
    # Stock rows
    path('stock-items/', stock_item_list, name='stock-item-list'),
    path('stock-items/summary/', stock_summary, name='stock-summary'),
    path('stock-items/<int:pk>/', stock_item_detail, name='stock-item-detail'),

    # Movements
    path('item-movements/', item_movement_list_create, name='item-movement-list-create'),
    path('stock-movements/', stock_movement_list, name='stock-movement-list'),

    # Seeded units
    path('seeded-items/', seeded_items, name='seeded-items'),
]
