from django.urls import path
from .views import validate_sku, get_item_details, save_stock_data, sku_lookup_import, sku_lookup_template

urlpatterns = [
    path('validate-sku/', validate_sku, name='validate-sku'),
    path('get-item-details/', get_item_details, name='get-item-details'),
    path('save-stock-data/', save_stock_data, name='save-stock-data'),
    path('sku-lookup/import/', sku_lookup_import, name='sku-lookup-import'),
    path('sku-lookup/template/', sku_lookup_template, name='sku-lookup-template'),
]
