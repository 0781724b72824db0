from django.contrib import admin
from .models import BorrowRequest, BorrowRequestItem


class BorrowRequestItemInline(admin.TabularInline):
    model = BorrowRequestItem
    extra = 0
    fields = ['item', 'quantity', 'status', 'box', 'return_box', 'return_condition', 'return_notes']
    readonly_fields = ['status', 'box', 'return_box']


@admin.register(BorrowRequest)
class BorrowRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'requester', 'status', 'start_date', 'end_date', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['requester__username', 'requester__name', 'reason']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [BorrowRequestItemInline]
