import logging
import random
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from backend.catalog.models import Item
from backend.catalog.utils import normalize_product_code, parse_product_code
from backend.core.permissions import (
    has_role, is_superadmin, CLEARANCE_APPROVER_ROLES, CLEARANCE_REQUESTER_ROLES, STORAGE_MASTER_ROLES
)
from backend.core.spreadsheets import (
    SpreadsheetError, read_rows, missing_columns, get_column, tabular_response
)
from backend.core.utils import create_audit_log, paginate, short_reference
from backend.inventory import services
from backend.inventory.filters import filter_item_search
from backend.inventory.models import ItemStock
from .models import ItemClearance, ClearanceForm, ClearanceFormItem, ClearedItem
from .serializers import (
    ClearanceItemSerializer, ClearanceFormSerializer, ClearanceFormDetailSerializer, ClearedItemSerializer,
    ClearanceFormCreateSerializer, ClearanceLineInputSerializer
)

logger = logging.getLogger('backend.clearance')

CLEARANCE_REASONS = [
    {'id': 'seeding', 'name': 'Seeding', 'description': 'Item not returned by user (lost or damaged)',
     'requires_approval': True, 'can_revert': True},
    {'id': 'damaged', 'name': 'Damaged', 'description': 'Item returned in damaged condition',
     'requires_approval': True, 'can_revert': False},
    {'id': 'expired', 'name': 'Expired', 'description': 'Item has expired or reached end of life',
     'requires_approval': True, 'can_revert': False},
    {'id': 'obsolete', 'name': 'Obsolete', 'description': 'Item is no longer needed or useful',
     'requires_approval': True, 'can_revert': False},
    {'id': 'recall', 'name': 'Recall', 'description': 'Item recalled due to safety or quality issues',
     'requires_approval': True, 'can_revert': False},
    {'id': 'other', 'name': 'Other', 'description': 'Other reasons for clearance',
     'requires_approval': True, 'can_revert': False},
]

CLEARANCE_IMPORT_COLUMNS = ['Product Code', 'In Clearance']
CLEARANCE_EXPORT_HEADERS = [
    'Product Code', 'Description', 'Brand', 'Division', 'Category', 'Period', 'Season',
    'Unit of Measure', 'In Clearance', 'Box', 'Location', 'Condition'
]
SCANNED_FORM_CONTENT_TYPES = ('image/jpeg', 'image/png', 'image/webp', 'application/pdf')


def _forbidden(request, action, message):
    logger.warning(f"User {request.user.username} attempted to {action} without the required role")
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


def _reserved_on_forms(stock_ids=None, item=None, exclude_form=None):
    """Units already claimed by open clearance forms"""
    lines = ClearanceFormItem.objects.filter(form__status__in=ClearanceForm.OPEN_STATUSES)
    if stock_ids is not None:
        lines = lines.filter(stock_id__in=stock_ids)
    if item is not None:
        lines = lines.filter(item=item)
    if exclude_form is not None:
        lines = lines.exclude(form=exclude_form)
    return lines.aggregate(total=Sum('quantity'))['total'] or 0


def _reserved_by_row(item):
    """Units claimed by open clearance forms, keyed by stock row id"""
    lines = ClearanceFormItem.objects.filter(
        form__status__in=ClearanceForm.OPEN_STATUSES, item=item, stock__isnull=False
    )
    return {
        line['stock_id']: line['total']
        for line in lines.values('stock_id').order_by().annotate(total=Sum('quantity'))
    }


def _revertible(item):
    reserved = _reserved_by_row(item)
    rows = item.stock_entries.filter(in_clearance__gt=0).values_list('pk', 'in_clearance')
    return sum(max(in_clearance - reserved.get(pk, 0), 0) for pk, in_clearance in rows)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def clearance_reasons(request):
    return Response(CLEARANCE_REASONS)


# Item-level clearance
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def clearance_item_list(request):
    """Items holding units in clearance"""
    queryset = Item.objects.prefetch_related('images').annotate(
        **{f'sum_{field}': Sum(f'stock_entries__{field}') for field in ItemStock.COUNTER_FIELDS}
    ).filter(sum_in_clearance__gt=0)
    queryset = filter_item_search(queryset, request.query_params.get('search'), prefix='').order_by('product_code')
    return Response(paginate(request, queryset, ClearanceItemSerializer))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bulk_clearance(request):
    """Move quantities of several items into clearance, pending units first"""
    if not has_role(request.user, CLEARANCE_REQUESTER_ROLES):
        return _forbidden(request, 'move items to clearance', 'You do not have permission to move items to clearance')

    serializer = ClearanceLineInputSerializer(data=request.data.get('items') or [], many=True)
    if not serializer.is_valid() or not serializer.validated_data:
        return Response({'error': 'items must be a non-empty list of {product_code, quantity}',
                         'details': serializer.errors if serializer.errors else None},
                        status=status.HTTP_400_BAD_REQUEST)
    reason = (request.data.get('reason') or '').strip()
    if not reason:
        return Response({'error': 'reason is required'}, status=status.HTTP_400_BAD_REQUEST)

    reference = short_reference()
    results = []
    errors = []
    for line in serializer.validated_data:
        code = normalize_product_code(line['product_code'])
        item = Item.objects.filter(product_code=code).first()
        if item is None:
            errors.append({'product_code': code, 'error': 'Item not found'})
            continue
        try:
            with transaction.atomic():
                cleared = services.move_to_clearance(
                    item, line['quantity'], request.user, reason=reason, reference_id=reference
                )
                record = ItemClearance.objects.create(
                    item=item, quantity=line['quantity'], reason=reason, status='completed',
                    requested_by=request.user, reference=reference, metadata=cleared,
                )
        except services.StockError as e:
            errors.append({'product_code': code, 'error': str(e)})
            continue
        results.append({'product_code': code, 'quantity': line['quantity'], 'clearance_id': record.pk, **cleared})
        create_audit_log(request=request, action='clearance_add', model_name='Item', object_id=code,
                         object_name=code, changes={'quantity': line['quantity'], 'reference': reference, **cleared})

    logger.info(f"Bulk clearance {reference} by {request.user.username}: {len(results)} items, {len(errors)} errors")
    return Response({
        'message': f'{len(results)} items moved to clearance',
        'reference': reference,
        'results': results,
        'errors': errors,
    }, status=status.HTTP_200_OK if results else status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def revert_from_clearance(request):
    """Move units of one item from clearance back to storage"""
    if not has_role(request.user, CLEARANCE_REQUESTER_ROLES):
        return _forbidden(request, 'revert clearance', 'You do not have permission to revert clearance')
    serializer = ClearanceLineInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invalid revert data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    code = normalize_product_code(serializer.validated_data['product_code'])
    quantity = serializer.validated_data['quantity']
    item = get_object_or_404(Item, product_code=code)
    notes = request.data.get('notes', '')

    revertible = _revertible(item)
    if quantity > revertible:
        return Response({'error': f'Only {revertible} units of {code} can be reverted from clearance'},
                        status=status.HTTP_400_BAD_REQUEST)

    reference = short_reference()
    try:
        with transaction.atomic():
            services.revert_from_clearance(item, quantity, request.user, notes=notes, reference_id=reference,
                                           reserved=_reserved_by_row(item))
            ItemClearance.objects.create(
                item=item, quantity=-quantity, reason=notes or 'Reverted from clearance', status='reverted',
                requested_by=request.user, reference=reference,
            )
    except services.StockError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"{quantity} x {code} reverted from clearance by {request.user.username}")
    create_audit_log(request=request, action='clearance_revert', model_name='Item', object_id=code,
                     object_name=code, changes={'quantity': quantity, 'reference': reference})
    return Response({'message': f'{quantity} units of {code} returned to storage', 'product_code': code,
                     'quantity': quantity, 'reference': reference})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bulk_revert_clearance(request):
    """Revert every unreserved clearance unit of the given items"""
    if not has_role(request.user, CLEARANCE_REQUESTER_ROLES):
        return _forbidden(request, 'bulk revert clearance', 'You do not have permission to revert clearance')
    codes = request.data.get('product_codes')
    if not isinstance(codes, list) or not codes:
        return Response({'error': 'product_codes must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

    codes = [normalize_product_code(code) for code in codes]
    items = {item.product_code: item for item in Item.objects.filter(product_code__in=codes)}
    missing = [code for code in codes if code not in items]
    reference = short_reference()
    reverted = []
    with transaction.atomic():
        for code, item in items.items():
            quantity = _revertible(item)
            if quantity > 0:
                services.revert_from_clearance(item, quantity, request.user, notes='Bulk revert',
                                               reference_id=reference, reserved=_reserved_by_row(item))
                ItemClearance.objects.create(
                    item=item, quantity=-quantity, reason='Bulk revert', status='reverted',
                    requested_by=request.user, reference=reference,
                )
            # Records stay completed while open forms keep units in clearance
            if not item.stock_entries.filter(in_clearance__gt=0).exists():
                ItemClearance.objects.filter(item=item, status='completed').update(status='reverted')
            reverted.append({'product_code': code, 'quantity': quantity})
            create_audit_log(request=request, action='clearance_revert', model_name='Item', object_id=code,
                             object_name=code, changes={'quantity': quantity, 'reference': reference})

    logger.info(f"Bulk clearance revert by {request.user.username}: {len(reverted)} items, {len(missing)} unknown codes")
    return Response({
        'message': f'{len(reverted)} items reverted from clearance',
        'reverted': reverted,
        'non_existing_product_codes': missing,
    })


# Clearance spreadsheets
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def clearance_items_export(request):
    rows = []
    stock_rows = ItemStock.objects.filter(in_clearance__gt=0).select_related('item', 'box', 'box__location')
    for stock in stock_rows.order_by('item_id', 'id'):
        item = stock.item
        parsed = parse_product_code(item.product_code)
        rows.append([
            item.product_code, item.description,
            parsed.get('brand_name', item.brand_code),
            parsed.get('division_name', item.product_division),
            parsed.get('category_name', item.product_category),
            item.period, item.season, item.unit_of_measure, stock.in_clearance,
            stock.box.box_number if stock.box else '',
            stock.box.location.name if stock.box else '',
            stock.condition,
        ])
    logger.info(f"Clearance export ({len(rows)} rows) by {request.user.username}")
    return tabular_response('xlsx', CLEARANCE_EXPORT_HEADERS, rows, 'clearance_items', title='Clearance')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def clearance_import_template(request):
    return tabular_response(
        request.query_params.get('format', 'xlsx'), CLEARANCE_IMPORT_COLUMNS,
        [['SPE110000001', 5], ['PIE120400002', 0]], 'clearance_import_template', title='Clearance'
    )


def _set_clearance_quantity(item, target, user, reference):
    current = item.stock_entries.aggregate(total=Sum('in_clearance'))['total'] or 0
    difference = target - current
    if difference > 0:
        services.move_to_clearance(
            item, difference, user, reason='Clearance import', reference_id=reference,
            reference_type='clearance_import', movement_type='adjustment', include_pending=False
        )
    elif difference < 0:
        reserved = _reserved_on_forms(item=item)
        if target < reserved:
            raise services.StockError(f'{reserved} units are claimed by open clearance forms')
        services.revert_from_clearance(
            item, -difference, user, notes='Clearance import', reference_id=reference,
            reference_type='clearance_import', movement_type='adjustment', reserved=_reserved_by_row(item)
        )
    if difference:
        ItemClearance.objects.create(
            item=item, quantity=difference, reason='Clearance import',
            status='completed' if difference > 0 else 'reverted', requested_by=user, reference=reference,
            metadata={'previous': current, 'target': target},
        )
    return current, difference


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def clearance_items_import(request):
    """Set clearance quantities from an xlsx upload"""
    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _forbidden(request, 'import clearance quantities', 'Only storage masters can import clearance quantities')
    upload = request.FILES.get('file')
    if upload is None:
        return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        headers, rows = read_rows(upload, allow_csv=False)
    except SpreadsheetError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    missing = missing_columns(headers, CLEARANCE_IMPORT_COLUMNS)
    if missing:
        return Response({'error': f"Missing required columns: {', '.join(missing)}"}, status=status.HTTP_400_BAD_REQUEST)

    reference = short_reference()
    results = []
    errors = []
    for row_number, row in rows:
        code = normalize_product_code(get_column(row, 'Product Code'))
        raw_quantity = get_column(row, 'In Clearance')
        try:
            target = int(raw_quantity)
        except (TypeError, ValueError):
            errors.append({'row': row_number, 'product_code': code, 'error': f'Invalid quantity {raw_quantity!r}'})
            continue
        if target < 0:
            errors.append({'row': row_number, 'product_code': code, 'error': 'Quantity cannot be negative'})
            continue
        item = Item.objects.filter(product_code=code).first()
        if item is None:
            errors.append({'row': row_number, 'product_code': code, 'error': 'Item not found'})
            continue
        try:
            with transaction.atomic():
                previous, difference = _set_clearance_quantity(item, target, request.user, reference)
        except services.StockError as e:
            errors.append({'row': row_number, 'product_code': code, 'error': str(e)})
            continue
        results.append({'row': row_number, 'product_code': code, 'previous': previous, 'in_clearance': target,
                        'difference': difference})

    logger.info(f"Clearance import {reference} by {request.user.username}: {len(results)} rows, {len(errors)} errors")
    create_audit_log(request=request, action='clearance_import', model_name='ItemClearance', object_id=reference,
                     object_name=upload.name, changes={'updated': len(results), 'failed': len(errors)})
    return Response({
        'message': f'{len(results)} rows imported, {len(errors)} failed',
        'reference': reference,
        'results': results,
        'errors': errors,
    })


# Clearance forms
def _generate_form_number():
    while True:
        number = f"CLR-{random.randint(0, 999999):06d}"
        if not ClearanceForm.objects.filter(form_number=number).exists():
            return number


def _release_form_stock(form, user, notes):
    for line in form.items.select_related('stock'):
        if line.stock_id is not None and ItemStock.objects.filter(pk=line.stock_id).exists():
            services.release_clearance(line.stock, line.quantity, user, notes=notes, reference_id=form.form_number)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def clearance_form_list_create(request):
    """List clearance forms or create a draft form"""
    if request.method == 'GET':
        forms = ClearanceForm.objects.select_related('created_by').annotate(
            annotated_item_count=Count('items'), annotated_total_quantity=Sum('items__quantity')
        )
        status_filter = request.query_params.get('status')
        if status_filter:
            forms = forms.filter(status=status_filter)
        search = request.query_params.get('search')
        if search:
            forms = forms.filter(Q(form_number__icontains=search) | Q(title__icontains=search))
        return Response(paginate(request, forms.order_by('-created_at'), ClearanceFormSerializer))

    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _forbidden(request, 'create a clearance form', 'Only storage masters can create clearance forms')
    serializer = ClearanceFormCreateSerializer(data=request.data)
    if not serializer.is_valid():
        logger.warning(f"Clearance form validation failed: {serializer.errors}")
        return Response({'error': 'Invalid clearance form', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    lines = []
    for entry in data['items']:
        code = normalize_product_code(entry['product_code'])
        stock = ItemStock.objects.filter(pk=entry['stock_id']).first()
        if stock is None or stock.item_id != code:
            return Response({'error': f"Stock row {entry['stock_id']} does not belong to item {code}"},
                            status=status.HTTP_400_BAD_REQUEST)
        claimed = _reserved_on_forms(stock_ids=[stock.pk]) + sum(
            line['quantity'] for line in lines if line['stock'].pk == stock.pk
        )
        available = stock.in_clearance - claimed
        if available <= 0:
            return Response({'error': f'Stock row {stock.pk} of {code} has no unclaimed clearance units'},
                            status=status.HTTP_400_BAD_REQUEST)
        lines.append({
            'stock': stock,
            'quantity': min(entry['quantity'], available),
            'condition': entry.get('condition') or stock.condition,
            'condition_notes': entry.get('condition_notes', ''),
        })

    with transaction.atomic():
        form = ClearanceForm.objects.create(
            form_number=_generate_form_number(),
            title=data['title'],
            period=data['period'],
            description=data['description'],
            status='draft',
            created_by=request.user,
        )
        ClearanceFormItem.objects.bulk_create([
            ClearanceFormItem(form=form, item_id=line['stock'].item_id, stock=line['stock'], quantity=line['quantity'],
                              condition=line['condition'], condition_notes=line['condition_notes'])
            for line in lines
        ])

    logger.info(f"Clearance form {form.form_number} created by {request.user.username} with {len(lines)} lines")
    create_audit_log(request=request, action='create', model_name='ClearanceForm', object_id=form.pk,
                     object_name=form.form_number, changes={'items': len(lines)})
    return Response(ClearanceFormDetailSerializer(form).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def clearance_form_submit(request):
    """Send a draft form for approval"""
    form_id = request.data.get('form_id')
    if not form_id:
        return Response({'error': 'form_id is required'}, status=status.HTTP_400_BAD_REQUEST)
    form = get_object_or_404(ClearanceForm, pk=form_id)
    if form.created_by_id != request.user.pk:
        return _forbidden(request, f'submit clearance form {form.form_number}', 'Only the creator can submit this form')
    if form.status != 'draft':
        return Response({'error': 'Only draft forms can be submitted'}, status=status.HTTP_400_BAD_REQUEST)
    if not form.items.exists():
        return Response({'error': 'Form has no items'}, status=status.HTTP_400_BAD_REQUEST)

    form.status = 'pending_approval'
    form.save(update_fields=['status', 'updated_at'])
    logger.info(f"Clearance form {form.form_number} submitted by {request.user.username}")
    create_audit_log(request=request, action='form_submit', model_name='ClearanceForm', object_id=form.pk,
                     object_name=form.form_number)
    return Response({'message': f'Form {form.form_number} submitted for approval',
                     'form': ClearanceFormSerializer(form).data})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def clearance_form_detail(request, pk):
    """Retrieve a form, approve/reject/process it, or delete a draft"""
    form = get_object_or_404(ClearanceForm.objects.select_related('created_by'), pk=pk)

    if request.method == 'GET':
        return Response(ClearanceFormDetailSerializer(form).data)

    if request.method == 'DELETE':
        if form.status != 'draft':
            return Response({'error': 'Only draft forms can be deleted'}, status=status.HTTP_400_BAD_REQUEST)
        if form.created_by_id != request.user.pk and not is_superadmin(request.user):
            return _forbidden(request, f'delete clearance form {form.form_number}', 'Only the creator can delete this form')
        number = form.form_number
        with transaction.atomic():
            _release_form_stock(form, request.user, f'Clearance form {number} deleted')
            form.delete()
        logger.info(f"Clearance form {number} deleted by {request.user.username}")
        create_audit_log(request=request, action='delete', model_name='ClearanceForm', object_id=pk, object_name=number)
        return Response(status=status.HTTP_204_NO_CONTENT)

    action = request.data.get('action')
    now = timezone.now()

    if action == 'approve':
        if not has_role(request.user, CLEARANCE_APPROVER_ROLES):
            return _forbidden(request, f'approve {form.form_number}', 'Only storage master managers can approve clearance forms')
        if form.status != 'pending_approval':
            return Response({'error': 'Form is not pending approval'}, status=status.HTTP_400_BAD_REQUEST)
        form.status = 'approved'
        form.approved_by = request.user
        form.approved_at = now
        form.save()
        audit_action = 'form_approve'

    elif action == 'reject':
        if not has_role(request.user, CLEARANCE_APPROVER_ROLES):
            return _forbidden(request, f'reject {form.form_number}', 'Only storage master managers can reject clearance forms')
        if form.status != 'pending_approval':
            return Response({'error': 'Form is not pending approval'}, status=status.HTTP_400_BAD_REQUEST)
        reason = (request.data.get('reason') or '').strip()
        if not reason:
            return Response({'error': 'reason is required'}, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            _release_form_stock(form, request.user, f'Clearance form {form.form_number} rejected: {reason}')
            form.status = 'rejected'
            form.rejected_by = request.user
            form.rejected_at = now
            form.rejection_reason = reason
            form.save()
        audit_action = 'form_reject'

    elif action == 'process':
        if not has_role(request.user, STORAGE_MASTER_ROLES):
            return _forbidden(request, f'process {form.form_number}', 'Only storage masters can process clearance forms')
        if form.status != 'approved':
            return Response({'error': 'Only approved forms can be processed'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            with transaction.atomic():
                _process_form(form, request.user)
                form.status = 'processed'
                form.processed_by = request.user
                form.processed_at = now
                form.save()
        except services.StockError as e:
            logger.warning(f"Processing clearance form {form.form_number} failed: {str(e)}")
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        audit_action = 'form_process'

    else:
        return Response({'error': "action must be 'approve', 'reject' or 'process'"}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Clearance form {form.form_number} {form.status} by {request.user.username}")
    create_audit_log(request=request, action=audit_action, model_name='ClearanceForm', object_id=form.pk,
                     object_name=form.form_number, changes={'status': form.status})
    return Response({'message': f'Form {form.form_number} {form.status}', 'form': ClearanceFormDetailSerializer(form).data})


def _process_form(form, user):
    """Write off every line and keep a snapshot of what left the warehouse"""
    for line in form.items.select_related('item', 'stock'):
        if line.stock_id is None or not ItemStock.objects.filter(pk=line.stock_id).exists():
            raise services.StockError(f'Stock row for {line.item_id} no longer exists')
        box = services.write_off_clearance(
            line.stock, line.quantity, user, notes=f'Processed on form {form.form_number}',
            reference_id=form.form_number
        )
        item = line.item
        ClearedItem.objects.create(
            form=form,
            form_number=form.form_number,
            product_code=item.product_code,
            description=item.description,
            brand_code=item.brand_code,
            product_division=item.product_division,
            product_category=item.product_category,
            period=item.period,
            season=item.season,
            unit_of_measure=item.unit_of_measure,
            quantity=line.quantity,
            condition=line.condition,
            notes=line.condition_notes,
            box_id=box.pk if box else None,
            box_number=box.box_number if box else '',
            location_id=box.location_id if box else None,
            location_name=box.location.name if box else '',
            cleared_by=user,
        )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def clearance_form_upload(request, pk):
    """Attach the signed, scanned form"""
    if not has_role(request.user, STORAGE_MASTER_ROLES):
        return _forbidden(request, 'upload a scanned form', 'Only storage masters can upload scanned forms')
    form = get_object_or_404(ClearanceForm, pk=pk)
    if form.status not in ('approved', 'processed'):
        return Response({'error': 'Scanned forms can only be attached to approved or processed forms'},
                        status=status.HTTP_400_BAD_REQUEST)
    upload = request.FILES.get('file')
    if upload is None:
        return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)
    if upload.content_type not in SCANNED_FORM_CONTENT_TYPES:
        return Response({'error': 'File must be a JPEG, PNG, WebP image or a PDF'}, status=status.HTTP_400_BAD_REQUEST)
    if upload.size > settings.SCANNED_FORM_MAX_SIZE:
        return Response({'error': 'File exceeds the 10MB limit'}, status=status.HTTP_400_BAD_REQUEST)

    if form.scanned_form:
        form.scanned_form.delete(save=False)
    form.scanned_form = upload
    form.save(update_fields=['scanned_form', 'updated_at'])
    logger.info(f"Scanned form uploaded for {form.form_number} by {request.user.username}")
    create_audit_log(request=request, action='form_upload', model_name='ClearanceForm', object_id=form.pk,
                     object_name=form.form_number, changes={'file': form.scanned_form.name})
    return Response({'message': 'Scanned form uploaded', 'form': ClearanceFormSerializer(form).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def cleared_item_list(request):
    """Historical write-offs"""
    queryset = ClearedItem.objects.select_related('cleared_by')
    form_id = request.query_params.get('form')
    if form_id:
        queryset = queryset.filter(form_id=form_id)
    search = request.query_params.get('search')
    if search:
        queryset = queryset.filter(
            Q(product_code__icontains=search) | Q(description__icontains=search) | Q(form_number__icontains=search)
        )
    date_from = parse_date(request.query_params.get('date_from') or '')
    if date_from:
        queryset = queryset.filter(cleared_at__date__gte=date_from)
    date_to = parse_date(request.query_params.get('date_to') or '')
    if date_to:
        queryset = queryset.filter(cleared_at__date__lte=date_to)
    return Response(paginate(request, queryset, ClearedItemSerializer))
