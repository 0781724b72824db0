import logging
from datetime import timedelta
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.catalog.models import Item
from backend.catalog.utils import normalize_product_code
from backend.core.models import User
from backend.core.permissions import has_role, is_superadmin, STORAGE_MASTER_ROLES
from backend.core.utils import create_audit_log, paginate
from backend.inventory import services
from backend.locations.models import Box
from .models import BorrowRequest, BorrowRequestItem
from .serializers import (
    BorrowRequestSerializer, BorrowRequestCreateSerializer, CompleteItemSerializer, SeedItemSerializer
)

logger = logging.getLogger('backend.borrowing')


def _visible_requests(user):
    """Users see their own requests, managers their department's, other roles everything"""
    queryset = BorrowRequest.objects.select_related(
        'requester', 'requester__department'
    ).prefetch_related('items', 'items__item', 'items__box', 'items__return_box')
    if user.role == User.ROLE_USER:
        return queryset.filter(requester=user)
    if user.role == User.ROLE_MANAGER:
        if user.department_id is None:
            return queryset.filter(requester=user)
        return queryset.filter(Q(requester__department_id=user.department_id) | Q(requester=user))
    return queryset


def _can_manager_decide(user, borrow_request):
    if is_superadmin(user):
        return True
    return (
        user.role == User.ROLE_MANAGER
        and user.department_id is not None
        and user.department_id == borrow_request.requester.department_id
    )


def _set_item_status(borrow_request, new_status):
    borrow_request.items.exclude(status__in=BorrowRequestItem.RESOLVED_STATUSES).update(status=new_status)


# Borrow request views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def borrow_request_list_create(request):
    """List visible borrow requests or create a new one"""
    if request.method == 'GET':
        queryset = _visible_requests(request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        user_filter = request.query_params.get('user')
        if user_filter:
            queryset = queryset.filter(requester_id=user_filter)
        return Response(paginate(request, queryset, BorrowRequestSerializer))

    serializer = BorrowRequestCreateSerializer(data=request.data)
    if not serializer.is_valid():
        logger.warning(f"Borrow request validation failed for {request.user.username}: {serializer.errors}")
        return Response({'error': 'Invalid borrow request', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    # Merge duplicate lines of the same item
    quantities = {}
    for line in data['items']:
        code = normalize_product_code(line['product_code'])
        quantities[code] = quantities.get(code, 0) + line['quantity']

    items = {item.product_code: item for item in Item.objects.filter(product_code__in=quantities)}
    for code, quantity in quantities.items():
        item = items.get(code)
        if item is None:
            return Response({'error': f'Item {code} not found'}, status=status.HTTP_400_BAD_REQUEST)
        if item.status != 'approved':
            return Response({'error': f'Item {code} is not available for borrowing'}, status=status.HTTP_400_BAD_REQUEST)
        available = item.stock_entries.aggregate(total=Sum('in_storage'))['total'] or 0
        if available < quantity:
            return Response(
                {'error': f'Insufficient stock for {code}: requested {quantity}, available {available}'},
                status=status.HTTP_400_BAD_REQUEST
            )

    initial_status = 'pending_manager' if request.user.role == User.ROLE_USER else 'pending_storage'
    with transaction.atomic():
        borrow_request = BorrowRequest.objects.create(
            requester=request.user,
            start_date=data['start_date'],
            end_date=data['end_date'],
            reason=data['reason'],
            status=initial_status,
        )
        BorrowRequestItem.objects.bulk_create([
            BorrowRequestItem(borrow_request=borrow_request, item=items[code], quantity=quantity, status=initial_status)
            for code, quantity in quantities.items()
        ])

    logger.info(f"Borrow request {borrow_request.id} created by {request.user.username} ({initial_status})")
    create_audit_log(request=request, action='borrow_create', model_name='BorrowRequest', object_id=borrow_request.id,
                     object_name=f'Borrow #{borrow_request.id}', changes={'items': quantities})
    borrow_request = _visible_requests(request.user).get(pk=borrow_request.pk)
    return Response(BorrowRequestSerializer(borrow_request).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def borrow_request_detail(request, pk):
    borrow_request = get_object_or_404(_visible_requests(request.user), pk=pk)
    return Response(BorrowRequestSerializer(borrow_request).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def borrow_request_overdue(request):
    """Active requests past their end date"""
    queryset = _visible_requests(request.user).filter(status='active', end_date__lt=timezone.now()).order_by('end_date')
    return Response(BorrowRequestSerializer(queryset, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def borrow_request_approve(request, pk):
    """Manager or storage approval of a borrow request"""
    borrow_request = get_object_or_404(BorrowRequest.objects.select_related('requester'), pk=pk)
    approval_type = request.data.get('approval_type')
    now = timezone.now()

    if approval_type == 'manager':
        if borrow_request.status != 'pending_manager':
            return Response({'error': 'Request is not awaiting manager approval'}, status=status.HTTP_400_BAD_REQUEST)
        if not _can_manager_decide(request.user, borrow_request):
            logger.warning(f"User {request.user.username} attempted manager approval of borrow {pk}")
            return Response({'error': "Only the requester's department manager can approve"}, status=status.HTTP_403_FORBIDDEN)
        with transaction.atomic():
            borrow_request.status = 'pending_storage'
            borrow_request.manager_approved_by = request.user
            borrow_request.manager_approved_at = now
            borrow_request.save()
            _set_item_status(borrow_request, 'pending_storage')
        message = 'Borrow request approved by manager'

    elif approval_type == 'storage':
        if borrow_request.status != 'pending_storage':
            return Response({'error': 'Request is not awaiting storage approval'}, status=status.HTTP_400_BAD_REQUEST)
        if not has_role(request.user, STORAGE_MASTER_ROLES):
            logger.warning(f"User {request.user.username} attempted storage approval of borrow {pk}")
            return Response({'error': 'Only storage masters can approve at this stage'}, status=status.HTTP_403_FORBIDDEN)
        try:
            with transaction.atomic():
                for line in borrow_request.items.select_related('item'):
                    from_box, _borrowed = services.borrow_from_storage(
                        line.item, line.quantity, request.user, reference_id=borrow_request.pk
                    )
                    line.box = from_box
                    line.status = 'active'
                    line.save(update_fields=['box', 'status'])
                borrow_request.status = 'active'
                borrow_request.storage_approved_by = request.user
                borrow_request.storage_approved_at = now
                borrow_request.start_date = now
                borrow_request.end_date = now + timedelta(days=settings.BORROW_PERIOD_DAYS)
                borrow_request.save()
        except services.StockError as e:
            logger.warning(f"Storage approval of borrow {pk} failed: {str(e)}")
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        message = 'Borrow request approved, items are on loan'

    else:
        return Response({'error': "approval_type must be 'manager' or 'storage'"}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Borrow request {pk} {approval_type}-approved by {request.user.username}")
    create_audit_log(request=request, action='borrow_approve', model_name='BorrowRequest', object_id=pk,
                     object_name=f'Borrow #{pk}', changes={'approval_type': approval_type, 'status': borrow_request.status})
    borrow_request.refresh_from_db()
    return Response({'message': message, 'borrow_request': BorrowRequestSerializer(borrow_request).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def borrow_request_reject(request, pk):
    borrow_request = get_object_or_404(BorrowRequest.objects.select_related('requester'), pk=pk)
    rejection_type = request.data.get('rejection_type')
    reason = (request.data.get('reason') or '').strip()
    if not reason:
        return Response({'error': 'reason is required'}, status=status.HTTP_400_BAD_REQUEST)
    now = timezone.now()

    if rejection_type == 'manager':
        if borrow_request.status != 'pending_manager':
            return Response({'error': 'Request is not awaiting manager approval'}, status=status.HTTP_400_BAD_REQUEST)
        if not _can_manager_decide(request.user, borrow_request):
            return Response({'error': "Only the requester's department manager can reject"}, status=status.HTTP_403_FORBIDDEN)
        borrow_request.manager_rejected_by = request.user
        borrow_request.manager_rejected_at = now
        borrow_request.manager_rejection_reason = reason
    elif rejection_type == 'storage':
        if borrow_request.status != 'pending_storage':
            return Response({'error': 'Request is not awaiting storage approval'}, status=status.HTTP_400_BAD_REQUEST)
        if not has_role(request.user, STORAGE_MASTER_ROLES):
            return Response({'error': 'Only storage masters can reject at this stage'}, status=status.HTTP_403_FORBIDDEN)
        borrow_request.storage_rejected_by = request.user
        borrow_request.storage_rejected_at = now
        borrow_request.storage_rejection_reason = reason
    else:
        return Response({'error': "rejection_type must be 'manager' or 'storage'"}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        borrow_request.status = 'rejected'
        borrow_request.save()
        _set_item_status(borrow_request, 'rejected')

    logger.info(f"Borrow request {pk} rejected ({rejection_type}) by {request.user.username}")
    create_audit_log(request=request, action='borrow_reject', model_name='BorrowRequest', object_id=pk,
                     object_name=f'Borrow #{pk}', changes={'rejection_type': rejection_type, 'reason': reason})
    return Response({'message': 'Borrow request rejected', 'borrow_request': BorrowRequestSerializer(borrow_request).data})


def _active_request_or_error(request, pk, action):
    if not has_role(request.user, STORAGE_MASTER_ROLES):
        logger.warning(f"User {request.user.username} attempted to {action} borrow {pk}")
        return None, Response({'error': 'Only storage masters can process returns'}, status=status.HTTP_403_FORBIDDEN)
    borrow_request = get_object_or_404(BorrowRequest, pk=pk)
    if borrow_request.status != 'active':
        return None, Response({'error': 'Borrow request is not active'}, status=status.HTTP_400_BAD_REQUEST)
    return borrow_request, None


def _line_or_error(borrow_request, line_id):
    line = borrow_request.items.select_related('item').filter(pk=line_id).first()
    if line is None:
        raise services.StockError(f'Borrow request item {line_id} does not belong to this request')
    if line.is_resolved:
        raise services.StockError(f'Borrow request item {line_id} is already {line.status}')
    return line


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def borrow_request_complete(request, pk):
    """Return borrowed items to storage or mark them seeded"""
    borrow_request, error = _active_request_or_error(request, pk, 'complete')
    if error:
        return error

    entries = request.data.get('items')
    if not isinstance(entries, list) or not entries:
        return Response({'error': 'items must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = CompleteItemSerializer(data=entries, many=True)
    if not serializer.is_valid():
        return Response({'error': 'Invalid return data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    now = timezone.now()
    returned_any = False
    try:
        with transaction.atomic():
            for entry in serializer.validated_data:
                line = _line_or_error(borrow_request, entry['borrow_request_item_id'])
                notes = entry.get('return_notes', '')
                if entry['status'] == 'complete':
                    box = Box.objects.filter(pk=entry['box_id']).first()
                    if box is None:
                        raise services.StockError(f"Box {entry['box_id']} not found")
                    services.return_from_borrow(
                        line.item, line.quantity, box, entry['return_condition'], request.user,
                        notes=notes, reference_id=line.pk
                    )
                    line.status = 'complete'
                    line.return_box = box
                    line.return_condition = entry['return_condition']
                    line.completed_by = request.user
                    line.completed_at = now
                    returned_any = True
                else:
                    services.seed_from_borrow(line.item, line.quantity, request.user, notes=notes, reference_id=line.pk)
                    line.status = 'seeded'
                    line.return_condition = entry.get('return_condition') or ''
                    line.seeded_by = request.user
                    line.seeded_at = now
                line.return_notes = notes
                line.save()

            if not borrow_request.items.exclude(status__in=BorrowRequestItem.RESOLVED_STATUSES).exists():
                borrow_request.status = 'complete'
                borrow_request.completed_by = request.user
                borrow_request.completed_at = now
            if returned_any:
                borrow_request.end_date = now
            borrow_request.save()
    except services.StockError as e:
        logger.warning(f"Completing borrow {pk} failed: {str(e)}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Borrow request {pk}: {len(serializer.validated_data)} items processed by {request.user.username}")
    create_audit_log(request=request, action='borrow_complete', model_name='BorrowRequest', object_id=pk,
                     object_name=f'Borrow #{pk}', changes={'items': len(serializer.validated_data), 'status': borrow_request.status})
    return Response({
        'message': 'Borrow request items processed',
        'borrow_request_id': borrow_request.pk,
        'borrow_request_status': borrow_request.status,
        'items_processed': len(serializer.validated_data),
        'end_date_updated': returned_any,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def borrow_request_seed(request, pk):
    """Mark borrowed items as lost or damaged"""
    borrow_request, error = _active_request_or_error(request, pk, 'seed')
    if error:
        return error

    entries = request.data.get('items')
    if not isinstance(entries, list) or not entries:
        return Response({'error': 'items must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = SeedItemSerializer(data=entries, many=True)
    if not serializer.is_valid():
        return Response({'error': 'Invalid seed data', 'details': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    now = timezone.now()
    try:
        with transaction.atomic():
            for entry in serializer.validated_data:
                line = _line_or_error(borrow_request, entry['borrow_request_item_id'])
                reason = entry.get('reason') or 'Item not returned'
                services.seed_from_borrow(line.item, line.quantity, request.user, notes=reason, reference_id=line.pk)
                line.status = 'seeded'
                line.return_notes = reason
                line.seeded_by = request.user
                line.seeded_at = now
                line.save()

            if not borrow_request.items.exclude(status__in=BorrowRequestItem.RESOLVED_STATUSES).exists():
                borrow_request.status = 'seeded'
                borrow_request.completed_by = request.user
                borrow_request.completed_at = now
                borrow_request.save()
    except services.StockError as e:
        logger.warning(f"Seeding borrow {pk} failed: {str(e)}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Borrow request {pk}: {len(serializer.validated_data)} items seeded by {request.user.username}")
    create_audit_log(request=request, action='borrow_seed', model_name='BorrowRequest', object_id=pk,
                     object_name=f'Borrow #{pk}', changes={'items': len(serializer.validated_data)})
    return Response({
        'message': 'Items marked as seeded',
        'borrow_request_id': borrow_request.pk,
        'borrow_request_status': borrow_request.status,
        'items_processed': len(serializer.validated_data),
    })
