from django.contrib import admin
from .models import ItemClearance, ClearanceForm, ClearanceFormItem, ClearedItem


@admin.register(ItemClearance)
class ItemClearanceAdmin(admin.ModelAdmin):
    list_display = ['reference', 'item', 'quantity', 'status', 'requested_by', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['reference', 'item__product_code', 'reason']
    ordering = ['-created_at']


class ClearanceFormItemInline(admin.TabularInline):
    model = ClearanceFormItem
    extra = 0
    fields = ['item', 'stock', 'quantity', 'condition', 'condition_notes']


@admin.register(ClearanceForm)
class ClearanceFormAdmin(admin.ModelAdmin):
    list_display = ['form_number', 'title', 'period', 'status', 'created_by', 'approved_by', 'processed_at', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['form_number', 'title']
    ordering = ['-created_at']
    readonly_fields = ['form_number', 'created_at', 'updated_at']
    inlines = [ClearanceFormItemInline]


@admin.register(ClearedItem)
class ClearedItemAdmin(admin.ModelAdmin):
    list_display = ['form_number', 'product_code', 'quantity', 'condition', 'box_number', 'location_name', 'cleared_by', 'cleared_at']
    list_filter = ['cleared_at', 'condition']
    search_fields = ['form_number', 'product_code', 'description']
    ordering = ['-cleared_at']
