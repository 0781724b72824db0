from django.contrib import admin
from django.utils.safestring import mark_safe
from .models import Item, ItemImage, ItemArchive, ItemRequest


class ItemImageInline(admin.TabularInline):
    model = ItemImage
    extra = 0
    fields = ['image', 'preview', 'alt_text', 'is_primary']
    readonly_fields = ['preview']

    def preview(self, obj):
        if obj.image:
            return mark_safe(f'<img src="{obj.image.url}" style="max-height: 80px;" />')
        return '-'


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ['product_code', 'description', 'brand_code', 'product_division', 'product_category', 'total_stock', 'status', 'created_at']
    list_filter = ['status', 'brand_code', 'product_division', 'season', 'unit_of_measure']
    search_fields = ['product_code', 'description']
    ordering = ['-created_at']
    readonly_fields = ['brand_code', 'product_division', 'product_category', 'created_at', 'updated_at']
    inlines = [ItemImageInline]


@admin.register(ItemArchive)
class ItemArchiveAdmin(admin.ModelAdmin):
    list_display = ['item', 'reason', 'archived_by', 'archived_at']
    search_fields = ['item__product_code', 'reason']
    ordering = ['-archived_at']
    readonly_fields = ['archived_at', 'stock_snapshot', 'metadata']


@admin.register(ItemRequest)
class ItemRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'item', 'status', 'requested_by', 'processed_by', 'processed_at', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['item__product_code', 'item__description']
    ordering = ['-created_at']
