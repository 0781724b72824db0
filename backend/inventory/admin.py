from django.contrib import admin
from .models import ItemStock, StockMovement


@admin.register(ItemStock)
class ItemStockAdmin(admin.ModelAdmin):
    list_display = ['item', 'box', 'pending', 'in_storage', 'on_borrow', 'in_clearance', 'seeded', 'condition', 'updated_at']
    list_filter = ['condition', 'box__location']
    search_fields = ['item__product_code', 'item__description', 'box__box_number']
    ordering = ['item', 'box']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['item', 'movement_type', 'quantity', 'from_state', 'to_state', 'reference_type', 'reference_id', 'performed_by', 'created_at']
    list_filter = ['movement_type', 'from_state', 'to_state', 'created_at']
    search_fields = ['item__product_code', 'reference_id', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['created_at']
