import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.core.cache_signals import suspend_cache_signals, invalidate_storage_caches
from backend.core.permissions import has_role, is_superadmin, ITEM_EDITOR_ROLES, STORAGE_MASTER_ROLES
from backend.core.spreadsheets import (
    SpreadsheetError, read_rows, missing_columns, get_column, tabular_response
)
from backend.core.utils import create_audit_log, paginate
from backend.inventory import services
from backend.inventory.models import ItemStock
from backend.locations.models import Box
from .filters import ItemFilter, ItemRequestFilter
from .models import Item, ItemImage, ItemArchive, ItemRequest
from .serializers import (
    ItemSerializer, ItemDetailSerializer, ItemRequestSerializer, ArchivedItemSerializer
)
from .utils import normalize_product_code, parse_product_code

logger = logging.getLogger('backend.catalog')

IMPORT_REQUIRED_COLUMNS = ['Product Code', 'Description', 'Total Stock', 'Period', 'Season', 'Unit of Measure']
IMPORT_OPTIONAL_COLUMNS = ['Condition', 'Condition Notes']
IMPORT_TEMPLATE_ROWS = [
    ['SPE110000001', 'Accelerator FG Black', 24, '2024-Q1', 'SS', 'PRS', 'good', ''],
    ['PIE120400002', 'Running Tee Navy', 10, '2024-Q2', 'FW', 'PCS', 'excellent', 'Sample batch'],
]
EXPORT_HEADERS = [
    'Product Code', 'Description', 'Brand', 'Division', 'Category', 'Total Stock', 'Period', 'Season',
    'Unit of Measure', 'Status', 'Pending', 'In Storage', 'On Borrow', 'In Clearance', 'Seeded'
]


def _editor_forbidden(request, action):
    logger.warning(f"User {request.user.username} attempted to {action} without item editor role")
    return Response({'error': 'You do not have permission to manage items'}, status=status.HTTP_403_FORBIDDEN)


def _storage_forbidden(request, action):
    logger.warning(f"User {request.user.username} attempted to {action} without storage role")
    return Response({'error': 'Only storage masters can process item requests'}, status=status.HTTP_403_FORBIDDEN)


def _annotated_items():
    return Item.objects.select_related('created_by').prefetch_related('images').annotate(
        **{f'sum_{field}': Sum(f'stock_entries__{field}') for field in ItemStock.COUNTER_FIELDS}
    )


def _on_borrow(item):
    return item.stock_entries.aggregate(total=Sum('on_borrow'))['total'] or 0


def _save_images(item, files, replace=False):
    if not files:
        return
    if replace:
        for image in item.images.all():
            image.image.delete(save=False)
            image.delete()
    for index, upload in enumerate(files):
        ItemImage.objects.create(item=item, image=upload, alt_text=item.description[:255], is_primary=index == 0)


def _register_item(data, user):
    """Create a pending item with its intake stock and approval request"""
    condition = data.pop('condition', 'good') or 'good'
    condition_notes = data.pop('condition_notes', '')
    item = Item.objects.create(created_by=user, status='pending_approval', **data)
    services.register_intake(item, item.total_stock, user, condition, condition_notes)
    ItemRequest.objects.create(item=item, requested_by=user, status='pending')
    return item


# Item views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def item_list_create(request):
    """List items with summed stock counters or register a new item"""
    if request.method == 'GET':
        queryset = _annotated_items()
        if not request.query_params.get('status'):
            queryset = queryset.exclude(status='archived')
        queryset = ItemFilter(request.query_params, queryset=queryset).qs.order_by('-created_at')
        return Response(paginate(request, queryset, ItemSerializer))

    if not has_role(request.user, ITEM_EDITOR_ROLES):
        return _editor_forbidden(request, 'create an item')

    serializer = ItemSerializer(data=request.data)
    if not serializer.is_valid():
        logger.warning(f"Item creation validation failed: {serializer.errors}")
        return Response({'error': 'Invalid item data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    data = dict(serializer.validated_data)
    if Item.objects.filter(product_code=data['product_code']).exists():
        return Response({'error': f"Item with product code {data['product_code']} already exists"}, status=status.HTTP_409_CONFLICT)

    with transaction.atomic():
        item = _register_item(data, request.user)
        _save_images(item, request.FILES.getlist('images'))

    logger.info(f"Item {item.product_code} registered by {request.user.username} with {item.total_stock} pending units")
    create_audit_log(request=request, action='create', model_name='Item', object_id=item.product_code,
                     object_name=item.product_code, changes={'total_stock': item.total_stock})
    return Response(ItemDetailSerializer(item).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def item_detail(request, product_code):
    """Retrieve, update or delete an item"""
    item = get_object_or_404(Item.objects.select_related('created_by'), product_code=normalize_product_code(product_code))

    if request.method == 'GET':
        return Response(ItemDetailSerializer(item).data)

    if request.method == 'DELETE':
        if not is_superadmin(request.user):
            logger.warning(f"User {request.user.username} attempted to delete item {item.product_code}")
            return Response({'error': 'Only superadmins can delete items'}, status=status.HTTP_403_FORBIDDEN)
        if _on_borrow(item) > 0:
            return Response({'error': 'Cannot delete an item with units on borrow'}, status=status.HTTP_409_CONFLICT)
        code = item.product_code
        item.delete()
        logger.info(f"Item {code} deleted by {request.user.username}")
        create_audit_log(request=request, action='delete', model_name='Item', object_id=code, object_name=code)
        return Response(status=status.HTTP_204_NO_CONTENT)

    if not has_role(request.user, ITEM_EDITOR_ROLES):
        return _editor_forbidden(request, f'update item {item.product_code}')
    if not is_superadmin(request.user) and item.status != 'pending_approval':
        return Response({'error': 'Only items pending approval can be edited'}, status=status.HTTP_403_FORBIDDEN)

    previous_total = item.total_stock
    serializer = ItemSerializer(item, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        logger.warning(f"Item update validation failed: {serializer.errors}")
        return Response({'error': 'Invalid item data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    serializer.validated_data.pop('condition', None)
    serializer.validated_data.pop('condition_notes', None)

    with transaction.atomic():
        item = serializer.save()
        if item.status == 'pending_approval' and item.total_stock != previous_total:
            services.resync_pending(item, item.total_stock, request.user)
        _save_images(item, request.FILES.getlist('images'), replace=True)

    logger.info(f"Item {item.product_code} updated by {request.user.username}")
    create_audit_log(request=request, action='update', model_name='Item', object_id=item.product_code,
                     object_name=item.product_code, changes={k: str(v) for k, v in serializer.validated_data.items()})
    return Response(ItemDetailSerializer(item).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_bulk_delete(request):
    """Delete several items; items with units on borrow are reported back"""
    if not is_superadmin(request.user):
        return Response({'error': 'Only superadmins can delete items'}, status=status.HTTP_403_FORBIDDEN)
    codes = request.data.get('product_codes')
    if not isinstance(codes, list) or not codes:
        return Response({'error': 'product_codes must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

    deleted = []
    errors = []
    for raw_code in codes:
        code = normalize_product_code(raw_code)
        item = Item.objects.filter(product_code=code).first()
        if item is None:
            errors.append({'product_code': code, 'error': 'Item not found'})
            continue
        if _on_borrow(item) > 0:
            errors.append({'product_code': code, 'error': 'Item has units on borrow'})
            continue
        item.delete()
        deleted.append(code)
        create_audit_log(request=request, action='delete', model_name='Item', object_id=code, object_name=code)

    logger.info(f"Bulk delete by {request.user.username}: {len(deleted)} deleted, {len(errors)} refused")
    return Response({'message': f'{len(deleted)} items deleted', 'deleted': deleted, 'errors': errors})


# Archive views
def _archive(item, reason, user):
    ItemArchive.objects.update_or_create(
        item=item,
        defaults={
            'reason': reason,
            'archived_by': user,
            'stock_snapshot': services.item_stock_totals(item),
            'metadata': {
                'description': item.description,
                'total_stock': item.total_stock,
                'period': item.period,
                'season': item.season,
                'unit_of_measure': item.unit_of_measure,
                'previous_status': item.status,
            },
        },
    )
    item.status = 'archived'
    item.save(update_fields=['status', 'updated_at'])


def _unarchive(item):
    archive = ItemArchive.objects.filter(item=item).first()
    previous_status = archive.metadata.get('previous_status') if archive else None
    if archive:
        archive.delete()
    # Items archived before intake approval go back to the approval queue
    item.status = 'pending_approval' if previous_status == 'pending_approval' else 'approved'
    item.save(update_fields=['status', 'updated_at'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_archive(request, product_code):
    """Archive an item with a reason"""
    if not has_role(request.user, ITEM_EDITOR_ROLES):
        return _editor_forbidden(request, 'archive an item')
    item = get_object_or_404(Item, product_code=normalize_product_code(product_code))
    reason = (request.data.get('reason') or '').strip()
    if not reason:
        return Response({'error': 'reason is required'}, status=status.HTTP_400_BAD_REQUEST)
    if item.status == 'archived':
        return Response({'error': 'Item is already archived'}, status=status.HTTP_400_BAD_REQUEST)
    if _on_borrow(item) > 0:
        return Response({'error': 'Cannot archive an item with units on borrow'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        _archive(item, reason, request.user)
    logger.info(f"Item {item.product_code} archived by {request.user.username}")
    create_audit_log(request=request, action='item_archive', model_name='Item', object_id=item.product_code,
                     object_name=item.product_code, changes={'reason': reason})
    return Response({'message': f'Item {item.product_code} archived', 'item': ArchivedItemSerializer(item).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_unarchive(request, product_code):
    """Restore an archived item"""
    if not has_role(request.user, ITEM_EDITOR_ROLES):
        return _editor_forbidden(request, 'unarchive an item')
    item = get_object_or_404(Item, product_code=normalize_product_code(product_code))
    if item.status != 'archived':
        return Response({'error': 'Item is not archived'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        _unarchive(item)
    logger.info(f"Item {item.product_code} unarchived by {request.user.username}")
    create_audit_log(request=request, action='item_unarchive', model_name='Item', object_id=item.product_code,
                     object_name=item.product_code)
    return Response({'message': f'Item {item.product_code} unarchived', 'item': ItemSerializer(item).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_bulk_archive(request):
    """Archive every eligible item in ``product_codes``"""
    if not has_role(request.user, ITEM_EDITOR_ROLES):
        return _editor_forbidden(request, 'bulk archive items')
    codes = request.data.get('product_codes')
    reason = (request.data.get('reason') or '').strip()
    if not isinstance(codes, list) or not codes:
        return Response({'error': 'product_codes must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    if not reason:
        return Response({'error': 'reason is required'}, status=status.HTTP_400_BAD_REQUEST)

    processed = 0
    skipped = []
    with transaction.atomic():
        for code in [normalize_product_code(c) for c in codes]:
            item = Item.objects.filter(product_code=code).first()
            if item is None or item.status == 'archived' or _on_borrow(item) > 0:
                skipped.append(code)
                continue
            _archive(item, reason, request.user)
            processed += 1
            create_audit_log(request=request, action='item_archive', model_name='Item', object_id=code,
                             object_name=code, changes={'reason': reason})

    logger.info(f"Bulk archive by {request.user.username}: {processed} archived, {len(skipped)} skipped")
    return Response({'message': f'{processed} items archived', 'processed': processed, 'skipped': skipped})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_bulk_unarchive(request):
    if not has_role(request.user, ITEM_EDITOR_ROLES):
        return _editor_forbidden(request, 'bulk unarchive items')
    codes = request.data.get('product_codes')
    if not isinstance(codes, list) or not codes:
        return Response({'error': 'product_codes must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

    processed = 0
    skipped = []
    with transaction.atomic():
        for code in [normalize_product_code(c) for c in codes]:
            item = Item.objects.filter(product_code=code, status='archived').first()
            if item is None:
                skipped.append(code)
                continue
            _unarchive(item)
            processed += 1
            create_audit_log(request=request, action='item_unarchive', model_name='Item', object_id=code, object_name=code)

    logger.info(f"Bulk unarchive by {request.user.username}: {processed} restored, {len(skipped)} skipped")
    return Response({'message': f'{processed} items unarchived', 'processed': processed, 'skipped': skipped})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def archived_item_list(request):
    """Archived items with their archive record"""
    queryset = _annotated_items().filter(status='archived').select_related('archive', 'archive__archived_by')
    queryset = ItemFilter(request.query_params, queryset=queryset).qs.order_by('-archive__archived_at')
    return Response(paginate(request, queryset, ArchivedItemSerializer))


# Import / export
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_import(request):
    """Register items from a CSV or xlsx upload, one item per row"""
    if not has_role(request.user, ITEM_EDITOR_ROLES):
        return _editor_forbidden(request, 'import items')
    upload = request.FILES.get('file')
    if upload is None:
        return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        headers, rows = read_rows(upload)
    except SpreadsheetError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    missing = missing_columns(headers, IMPORT_REQUIRED_COLUMNS)
    if missing:
        return Response({'error': f"Missing required columns: {', '.join(missing)}"}, status=status.HTTP_400_BAD_REQUEST)

    results = {'success': 0, 'failed': 0, 'errors': []}
    with suspend_cache_signals():
        for row_number, row in rows:
            code = normalize_product_code(get_column(row, 'Product Code'))
            payload = {
                'product_code': code,
                'description': get_column(row, 'Description'),
                'total_stock': get_column(row, 'Total Stock'),
                'period': get_column(row, 'Period'),
                'season': get_column(row, 'Season'),
                'unit_of_measure': get_column(row, 'Unit of Measure').upper(),
                'condition': get_column(row, 'Condition').lower() or 'good',
                'condition_notes': get_column(row, 'Condition Notes'),
            }
            serializer = ItemSerializer(data=payload)
            if not serializer.is_valid():
                field, messages = next(iter(serializer.errors.items()))
                results['failed'] += 1
                results['errors'].append({'row': row_number, 'product_code': code, 'error': f'{field}: {messages[0]}'})
                continue
            if Item.objects.filter(product_code=code).exists():
                results['failed'] += 1
                results['errors'].append({'row': row_number, 'product_code': code, 'error': 'Product code already exists'})
                continue
            with transaction.atomic():
                _register_item(dict(serializer.validated_data), request.user)
            results['success'] += 1
    invalidate_storage_caches()

    logger.info(f"Item import by {request.user.username}: {results['success']} created, {results['failed']} failed")
    create_audit_log(request=request, action='item_import', model_name='Item', object_id=upload.name,
                     object_name=upload.name, changes={'success': results['success'], 'failed': results['failed']})
    return Response({
        'message': f"Import finished: {results['success']} succeeded, {results['failed']} failed",
        'results': results,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def item_import_template(request):
    export_format = request.query_params.get('format', 'xlsx')
    return tabular_response(
        export_format, IMPORT_REQUIRED_COLUMNS + IMPORT_OPTIONAL_COLUMNS, IMPORT_TEMPLATE_ROWS,
        'item_import_template', title='Items'
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def item_export(request):
    """Export the filtered catalog as CSV or xlsx"""
    queryset = _annotated_items()
    if not request.query_params.get('status'):
        queryset = queryset.exclude(status='archived')
    queryset = ItemFilter(request.query_params, queryset=queryset).qs.order_by('product_code')

    rows = []
    for item in queryset:
        parsed = parse_product_code(item.product_code)
        rows.append([
            item.product_code, item.description,
            parsed.get('brand_name', item.brand_code),
            parsed.get('division_name', item.product_division),
            parsed.get('category_name', item.product_category),
            item.total_stock, item.period, item.season, item.unit_of_measure, item.status,
            *[getattr(item, f'sum_{field}') or 0 for field in ItemStock.COUNTER_FIELDS],
        ])
    logger.info(f"Item export ({len(rows)} rows) by {request.user.username}")
    return tabular_response(request.query_params.get('format', 'xlsx'), EXPORT_HEADERS, rows, 'items_export', title='Items')


# Item request views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def item_request_list(request):
    """List intake requests"""
    queryset = ItemRequest.objects.select_related('item', 'requested_by', 'processed_by')
    queryset = ItemRequestFilter(request.query_params, queryset=queryset).qs
    return Response(paginate(request, queryset, ItemRequestSerializer))


def _approve_request(item_request, box, user):
    item = item_request.item
    services.approve_intake(item, box, user, reference_id=item_request.pk)
    now = timezone.now()
    item.status = 'approved'
    item.approved_by = user
    item.approved_at = now
    item.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])
    item_request.status = 'approved'
    item_request.processed_by = user
    item_request.processed_at = now
    item_request.save(update_fields=['status', 'processed_by', 'processed_at', 'updated_at'])


def _reject_request(item_request, reason, user):
    item = item_request.item
    services.reject_intake(item, user, reference_id=item_request.pk, notes=reason)
    item.status = 'rejected'
    item.save(update_fields=['status', 'updated_at'])
    item_request.status = 'rejected'
    item_request.rejection_reason = reason
    item_request.processed_by = user
    item_request.processed_at = timezone.now()
    item_request.save(update_fields=['status', 'rejection_reason', 'processed_by', 'processed_at', 'updated_at'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_request_approve(request, pk):
    """Approve an intake request and shelve its units into a box"""
    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _storage_forbidden(request, f'approve item request {pk}')
    item_request = get_object_or_404(ItemRequest.objects.select_related('item'), pk=pk)
    if item_request.status != 'pending':
        return Response({'error': f'Request is already {item_request.status}'}, status=status.HTTP_400_BAD_REQUEST)
    box_id = request.data.get('box_id')
    if not box_id:
        return Response({'error': 'box_id is required'}, status=status.HTTP_400_BAD_REQUEST)
    box = get_object_or_404(Box, pk=box_id)

    try:
        with transaction.atomic():
            _approve_request(item_request, box, request.user)
    except services.StockError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Item request {pk} ({item_request.item_id}) approved into box {box} by {request.user.username}")
    create_audit_log(request=request, action='item_approve', model_name='ItemRequest', object_id=pk,
                     object_name=item_request.item_id, changes={'box_id': box.pk})
    return Response({'message': f'Item {item_request.item_id} approved', 'request': ItemRequestSerializer(item_request).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_request_reject(request, pk):
    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _storage_forbidden(request, f'reject item request {pk}')
    item_request = get_object_or_404(ItemRequest.objects.select_related('item'), pk=pk)
    if item_request.status != 'pending':
        return Response({'error': f'Request is already {item_request.status}'}, status=status.HTTP_400_BAD_REQUEST)
    reason = (request.data.get('reason') or '').strip()
    if not reason:
        return Response({'error': 'reason is required'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        _reject_request(item_request, reason, request.user)

    logger.info(f"Item request {pk} ({item_request.item_id}) rejected by {request.user.username}")
    create_audit_log(request=request, action='item_reject', model_name='ItemRequest', object_id=pk,
                     object_name=item_request.item_id, changes={'reason': reason})
    return Response({'message': f'Item {item_request.item_id} rejected', 'request': ItemRequestSerializer(item_request).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_request_bulk_approve(request):
    """Approve several pending requests into one box"""
    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _storage_forbidden(request, 'bulk approve item requests')
    request_ids = request.data.get('request_ids')
    if not isinstance(request_ids, list) or not request_ids:
        return Response({'error': 'request_ids must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    box_id = request.data.get('box_id')
    if not box_id:
        return Response({'error': 'box_id is required'}, status=status.HTTP_400_BAD_REQUEST)
    box = get_object_or_404(Box, pk=box_id)

    approved = 0
    try:
        with transaction.atomic(), suspend_cache_signals():
            pending = ItemRequest.objects.select_related('item').filter(pk__in=request_ids, status='pending')
            for item_request in pending:
                _approve_request(item_request, box, request.user)
                approved += 1
                create_audit_log(request=request, action='item_approve', model_name='ItemRequest',
                                 object_id=item_request.pk, object_name=item_request.item_id, changes={'box_id': box.pk})
    except services.StockError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    invalidate_storage_caches(box.location_id)

    logger.info(f"{approved} item requests approved into box {box} by {request.user.username}")
    return Response({'message': f'{approved} requests approved', 'count': approved})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_request_bulk_reject(request):
    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _storage_forbidden(request, 'bulk reject item requests')
    request_ids = request.data.get('request_ids')
    if not isinstance(request_ids, list) or not request_ids:
        return Response({'error': 'request_ids must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    reason = (request.data.get('reason') or '').strip()
    if not reason:
        return Response({'error': 'reason is required'}, status=status.HTTP_400_BAD_REQUEST)

    rejected = 0
    with transaction.atomic():
        for item_request in ItemRequest.objects.select_related('item').filter(pk__in=request_ids, status='pending'):
            _reject_request(item_request, reason, request.user)
            rejected += 1
            create_audit_log(request=request, action='item_reject', model_name='ItemRequest',
                             object_id=item_request.pk, object_name=item_request.item_id, changes={'reason': reason})

    logger.info(f"{rejected} item requests rejected by {request.user.username}")
    return Response({'message': f'{rejected} requests rejected', 'count': rejected})
