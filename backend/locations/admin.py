from django.contrib import admin
from .models import Location, Box


class BoxInline(admin.TabularInline):
    model = Box
    extra = 0
    fields = ['box_number', 'description']


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at', 'updated_at']
    search_fields = ['name', 'description']
    ordering = ['name']
    inlines = [BoxInline]


@admin.register(Box)
class BoxAdmin(admin.ModelAdmin):
    list_display = ['box_number', 'location', 'created_at']
    list_filter = ['location']
    search_fields = ['box_number', 'location__name']
    ordering = ['location__name', 'box_number']
