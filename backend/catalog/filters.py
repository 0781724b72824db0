import django_filters
from backend.inventory.filters import filter_item_search
from .models import Item, ItemRequest


class ItemFilter(django_filters.FilterSet):
    """Filter for the item catalog using django-filter"""

    # Searches product code and description, every word must match
    search = django_filters.CharFilter(method='filter_search', label='Search')

    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    brand = django_filters.CharFilter(field_name='brand_code', lookup_expr='iexact')
    division = django_filters.CharFilter(field_name='product_division', lookup_expr='exact')
    category = django_filters.CharFilter(field_name='product_category', lookup_expr='exact')
    season = django_filters.CharFilter(field_name='season', lookup_expr='iexact')
    period = django_filters.CharFilter(field_name='period', lookup_expr='iexact')

    class Meta:
        model = Item
        fields = ['search', 'status', 'brand', 'division', 'category', 'season', 'period']

    def filter_search(self, queryset, name, value):
        return filter_item_search(queryset, value, prefix='')


class ItemRequestFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = ItemRequest
        fields = ['status', 'search']

    def filter_search(self, queryset, name, value):
        return filter_item_search(queryset, value)
