import django_filters
from django.db.models import Q
from .models import ItemStock, StockMovement


def filter_item_search(queryset, value, prefix='item__'):
    """Match product code or description, all words in any order"""
    if not value or not value.strip():
        return queryset
    for word in value.split():
        queryset = queryset.filter(
            Q(**{f'{prefix}product_code__icontains': word}) | Q(**{f'{prefix}description__icontains': word})
        )
    return queryset


class ItemStockFilter(django_filters.FilterSet):
    """Filter for stock rows"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    location = django_filters.NumberFilter(field_name='box__location_id', lookup_expr='exact')
    box = django_filters.NumberFilter(field_name='box_id', lookup_expr='exact')
    condition = django_filters.CharFilter(field_name='condition', lookup_expr='exact')
    item = django_filters.CharFilter(field_name='item_id', lookup_expr='iexact')

    class Meta:
        model = ItemStock
        fields = ['search', 'location', 'box', 'condition', 'item']

    def filter_search(self, queryset, name, value):
        return filter_item_search(queryset, value)


class StockMovementFilter(django_filters.FilterSet):
    item = django_filters.CharFilter(field_name='item_id', lookup_expr='iexact')
    type = django_filters.CharFilter(field_name='movement_type', lookup_expr='exact')
    reference_type = django_filters.CharFilter(field_name='reference_type', lookup_expr='exact')
    reference_id = django_filters.CharFilter(field_name='reference_id', lookup_expr='exact')

    class Meta:
        model = StockMovement
        fields = ['item', 'type', 'reference_type', 'reference_id']
