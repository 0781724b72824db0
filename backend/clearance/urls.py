from django.urls import path
from .views import (
    clearance_reasons, clearance_item_list, bulk_clearance, revert_from_clearance, bulk_revert_clearance,
    clearance_items_export, clearance_import_template, clearance_items_import,
    clearance_form_list_create, clearance_form_submit, clearance_form_detail, clearance_form_upload,
    cleared_item_list
)

# Mounted before the catalog routes so items/clearance/ is not read as a product code
urlpatterns = [
    path('clearance/reasons/', clearance_reasons, name='clearance-reasons'),

    # Item-level clearance
    path('items/clearance/', clearance_item_list, name='clearance-item-list'),
    path('items/clearance/bulk-revert/', bulk_revert_clearance, name='clearance-bulk-revert'),
    path('items/bulk-clearance/', bulk_clearance, name='bulk-clearance'),
    path('items/revert-from-clearance/', revert_from_clearance, name='revert-from-clearance'),

    # Spreadsheets
    path('clearance-items/export/', clearance_items_export, name='clearance-items-export'),
    path('clearance-items/import/', clearance_items_import, name='clearance-items-import'),
    path('clearance-items/import/template/', clearance_import_template, name='clearance-import-template'),

    # Forms
    path('clearance-forms/', clearance_form_list_create, name='clearance-form-list-create'),
    path('clearance-forms/submit-for-approval/', clearance_form_submit, name='clearance-form-submit'),
    path('clearance-forms/<int:pk>/', clearance_form_detail, name='clearance-form-detail'),
    path('clearance-forms/<int:pk>/upload/', clearance_form_upload, name='clearance-form-upload'),
    path('cleared-items/', cleared_item_list, name='cleared-item-list'),
]
