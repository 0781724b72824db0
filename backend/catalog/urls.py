from django.urls import path
from .views import (
    item_list_create, item_detail, item_bulk_delete,
    item_archive, item_unarchive, item_bulk_archive, item_bulk_unarchive, archived_item_list,
    item_import, item_import_template, item_export,
    item_request_list, item_request_approve, item_request_reject,
    item_request_bulk_approve, item_request_bulk_reject
)

urlpatterns = [
    # Items (fixed paths before the product code route)
    path('items/', item_list_create, name='item-list-create'),
    path('items/bulk-delete/', item_bulk_delete, name='item-bulk-delete'),
    path('items/bulk-archive/', item_bulk_archive, name='item-bulk-archive'),
    path('items/bulk-unarchive/', item_bulk_unarchive, name='item-bulk-unarchive'),
    path('items/archived/', archived_item_list, name='item-archived-list'),
    path('items/import/', item_import, name='item-import'),
    path('items/import/template/', item_import_template, name='item-import-template'),
    path('items/export/', item_export, name='item-export'),
    path('items/<str:product_code>/', item_detail, name='item-detail'),
    path('items/<str:product_code>/archive/', item_archive, name='item-archive'),
    path('items/<str:product_code>/unarchive/', item_unarchive, name='item-unarchive'),

    # Intake requests
    path('item-requests/', item_request_list, name='item-request-list'),
    path('item-requests/bulk-approve/', item_request_bulk_approve, name='item-request-bulk-approve'),
    path('item-requests/bulk-reject/', item_request_bulk_reject, name='item-request-bulk-reject'),
    path('item-requests/<int:pk>/approve/', item_request_approve, name='item-request-approve'),
    path('item-requests/<int:pk>/reject/', item_request_reject, name='item-request-reject'),
]
