import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q, Sum
from django.shortcuts import get_object_or_404
from backend.catalog.models import Item
from backend.catalog.utils import normalize_product_code
from backend.core.permissions import has_role, MOVER_ROLES, STORAGE_MASTER_ROLES
from backend.core.utils import create_audit_log, paginate, parse_int_param
from backend.locations.models import Box
from .filters import ItemStockFilter, StockMovementFilter, filter_item_search
from .models import ItemStock, StockMovement
from .serializers import (
    ItemStockSerializer, StockMovementSerializer, ItemMovementSerializer, SeededReturnSerializer
)
from . import services

logger = logging.getLogger('backend.inventory')


def _non_empty(queryset):
    return queryset.filter(
        Q(pending__gt=0) | Q(in_storage__gt=0) | Q(on_borrow__gt=0) | Q(in_clearance__gt=0) | Q(seeded__gt=0)
    )


# Stock rows
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_item_list(request):
    """List non-empty stock rows with optional filtering"""
    queryset = _non_empty(ItemStock.objects.select_related('item', 'box', 'box__location'))
    queryset = ItemStockFilter(request.query_params, queryset=queryset).qs
    return Response(paginate(request, queryset, ItemStockSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_item_detail(request, pk):
    """Retrieve a stock row"""
    stock = get_object_or_404(ItemStock.objects.select_related('item', 'box', 'box__location'), pk=pk)
    return Response(ItemStockSerializer(stock).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_summary(request):
    """Warehouse-wide counter totals"""
    from backend.borrowing.models import BorrowRequest
    from backend.catalog.models import ItemRequest

    totals = ItemStock.objects.aggregate(**{field: Sum(field) for field in ItemStock.COUNTER_FIELDS})
    totals = {field: totals[field] or 0 for field in ItemStock.COUNTER_FIELDS}
    return Response({
        **totals,
        'total': sum(totals.values()),
        'item_count': Item.objects.exclude(status='archived').count(),
        'pending_item_requests': ItemRequest.objects.filter(status='pending').count(),
        'active_borrow_requests': BorrowRequest.objects.filter(status='active').count(),
    })


# Box-to-box movements
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def item_movement_list_create(request):
    """List box-to-box movements or move in-storage units to another box"""
    if request.method == 'GET':
        movements = StockMovement.objects.filter(
            movement_type='adjustment', from_state='storage', to_state='storage'
        ).select_related('from_box', 'to_box', 'performed_by')
        item_code = request.query_params.get('item')
        if item_code:
            movements = movements.filter(item_id=normalize_product_code(item_code))
        limit = parse_int_param(request.query_params.get('limit'), 50, minimum=1, maximum=500)
        offset = parse_int_param(request.query_params.get('offset'), 0)
        total = movements.count()
        return Response({
            'movements': StockMovementSerializer(movements[offset:offset + limit], many=True).data,
            'total': total,
        })

    if not has_role(request.user, MOVER_ROLES):
        logger.warning(f"User {request.user.username} attempted a stock move without mover role")
        return Response({'error': 'You do not have permission to move stock'}, status=status.HTTP_403_FORBIDDEN)

    serializer = ItemMovementSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invalid movement data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    product_code = normalize_product_code(data['product_code'])
    source = get_object_or_404(ItemStock, pk=data['source_stock_id'])
    if source.item_id != product_code:
        return Response({'error': 'Source stock does not belong to this item'}, status=status.HTTP_400_BAD_REQUEST)
    destination = get_object_or_404(Box, pk=data['destination_box_id'])

    try:
        with transaction.atomic():
            target = services.move_between_boxes(source, destination, data['quantity'], request.user, data['notes'])
    except services.StockError as e:
        logger.warning(f"Stock move of {product_code} refused: {str(e)}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"{data['quantity']} x {product_code} moved from stock {source.pk} to box {destination} by {request.user.username}")
    create_audit_log(
        request=request, action='stock_move', model_name='ItemStock', object_id=target.pk, object_name=product_code,
        changes={'source_stock_id': source.pk, 'destination_box_id': destination.pk, 'quantity': data['quantity']}
    )
    target.refresh_from_db()
    return Response({
        'message': f"Moved {data['quantity']} units to {destination}",
        'stock': ItemStockSerializer(target).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_movement_list(request):
    """Full movement log"""
    movements = StockMovement.objects.select_related('from_box', 'to_box', 'performed_by')
    movements = StockMovementFilter(request.query_params, queryset=movements).qs
    return Response(paginate(request, movements, StockMovementSerializer))


# Seeded units
@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def seeded_items(request):
    """List seeded stock, return seeded units to storage, or write them off"""
    if request.method == 'GET':
        queryset = ItemStock.objects.filter(seeded__gte=1).select_related('item', 'box', 'box__location')
        queryset = filter_item_search(queryset, request.query_params.get('search'))
        location_id = request.query_params.get('location')
        if location_id:
            queryset = queryset.filter(box__location_id=location_id)
        box_id = request.query_params.get('box')
        if box_id:
            queryset = queryset.filter(box_id=box_id)
        queryset = queryset.order_by('-updated_at')

        limit = parse_int_param(request.query_params.get('limit'), 20, minimum=1, maximum=200)
        offset = parse_int_param(request.query_params.get('offset'), 0)
        return Response({
            'items': ItemStockSerializer(queryset[offset:offset + limit], many=True).data,
            'total': queryset.count(),
        })

    if not has_role(request.user, STORAGE_MASTER_ROLES):
        logger.warning(f"User {request.user.username} attempted to modify seeded items")
        return Response({'error': 'Only storage masters can manage seeded items'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'POST':
        return _return_seeded(request)
    return _clear_seeded(request)


def _return_seeded(request):
    entries = request.data.get('items')
    if not isinstance(entries, list) or not entries:
        return Response({'error': 'items must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

    results = []
    errors = []
    for index, entry in enumerate(entries):
        serializer = SeededReturnSerializer(data=entry)
        if not serializer.is_valid():
            errors.append({'index': index, 'error': 'Invalid item data', 'details': serializer.errors})
            continue
        data = serializer.validated_data
        stock = ItemStock.objects.filter(pk=data['stock_id']).first()
        box = Box.objects.filter(pk=data['box_id']).first()
        if stock is None or box is None:
            errors.append({'index': index, 'stock_id': data['stock_id'], 'error': 'Stock row or box not found'})
            continue
        try:
            with transaction.atomic():
                target = services.revert_seed(
                    stock, box, data['quantity'], data.get('condition') or None, request.user, data['notes']
                )
        except services.StockError as e:
            errors.append({'index': index, 'stock_id': stock.pk, 'error': str(e)})
            continue

        logger.info(f"{data['quantity']} seeded x {stock.item_id} returned to box {box} by {request.user.username}")
        create_audit_log(
            request=request, action='seed_revert', model_name='ItemStock', object_id=stock.pk,
            object_name=stock.item_id, changes={'quantity': data['quantity'], 'box_id': box.pk}
        )
        results.append({'stock_id': stock.pk, 'product_code': stock.item_id, 'quantity': data['quantity'],
                        'target_stock_id': target.pk, 'box_id': box.pk})

    status_code = status.HTTP_200_OK if results else status.HTTP_400_BAD_REQUEST
    return Response({
        'message': f'{len(results)} seeded entries returned to storage',
        'results': results,
        'errors': errors,
    }, status=status_code)


def _clear_seeded(request):
    stock_ids = request.data.get('stock_ids')
    if not isinstance(stock_ids, list) or not stock_ids:
        return Response({'error': 'stock_ids must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        stock_ids = [int(stock_id) for stock_id in stock_ids]
    except (TypeError, ValueError):
        return Response({'error': 'stock_ids must be numeric ids'}, status=status.HTTP_400_BAD_REQUEST)
    notes = request.data.get('notes', '')

    cleared = []
    errors = []
    for stock in ItemStock.objects.filter(pk__in=stock_ids):
        try:
            with transaction.atomic():
                quantity = services.clear_seeded(stock, request.user, notes)
        except services.StockError as e:
            errors.append({'stock_id': stock.pk, 'error': str(e)})
            continue
        cleared.append({'stock_id': stock.pk, 'product_code': stock.item_id, 'quantity': quantity})
        create_audit_log(request=request, action='seed_clear', model_name='ItemStock', object_id=stock.pk,
                         object_name=stock.item_id, changes={'quantity': quantity, 'notes': notes})

    found = {entry['stock_id'] for entry in cleared} | {entry['stock_id'] for entry in errors}
    for missing in stock_ids:
        if missing not in found:
            errors.append({'stock_id': missing, 'error': 'Stock row not found'})

    logger.info(f"{len(cleared)} seeded stock rows written off by {request.user.username}")
    return Response({
        'message': f'{len(cleared)} seeded entries cleared',
        'cleared': cleared,
        'errors': errors,
    })
