"""
Stock state transitions.

Every change to the ``ItemStock`` counters goes through this module. Each
function locks the rows it touches (``select_for_update``), validates the
requested quantity against what is available, mutates the counters, records
a ``StockMovement`` and deletes rows whose counters all reach zero.

Callers wrap one business operation (e.g. approving a borrow request with
several items) in a single ``transaction.atomic()`` block; a ``StockError``
raised half-way rolls the whole operation back.
"""
import logging
from django.db.models import Sum
from django.utils import timezone
from .models import ItemStock, StockMovement

logger = logging.getLogger(__name__)

CONDITION_RANK = {
    'excellent': 4,
    'good': 3,
    'fair': 2,
    'poor': 1,
}


class StockError(ValueError):
    """Raised when a transition asks for more units than a state holds"""


def worse_condition(first, second):
    """Return the worse of two conditions (unknown values rank lowest)"""
    if not first:
        return second
    if not second:
        return first
    return first if CONDITION_RANK.get(first, 0) <= CONDITION_RANK.get(second, 0) else second


def append_notes(existing, notes):
    if not notes:
        return existing or ''
    stamped = f"[{timezone.now().isoformat()}] {notes}"
    return f"{existing}\n{stamped}" if existing else stamped


def item_stock_totals(item):
    """Sum of every counter over all stock rows of ``item``"""
    totals = ItemStock.objects.filter(item=item).aggregate(
        **{field: Sum(field) for field in ItemStock.COUNTER_FIELDS}
    )
    totals = {field: totals[field] or 0 for field in ItemStock.COUNTER_FIELDS}
    totals['total'] = sum(totals.values())
    return totals


def record_movement(item, movement_type, quantity, from_state, to_state, user=None, stock=None,
                    from_box=None, to_box=None, reference_id='', reference_type='', notes=''):
    return StockMovement.objects.create(
        item=item,
        stock=stock,
        movement_type=movement_type,
        quantity=quantity,
        from_state=from_state,
        to_state=to_state,
        from_box=from_box,
        to_box=to_box,
        reference_id=str(reference_id or ''),
        reference_type=reference_type,
        performed_by=user if user and user.is_authenticated else None,
        notes=notes or '',
    )


def save_or_delete(stock):
    """Persist ``stock``; remove it instead when every counter is zero"""
    if stock.is_empty:
        logger.debug(f"Deleting empty stock row {stock.pk} for {stock.item_id}")
        stock.delete()
        return None
    stock.save()
    return stock


def _validate_quantity(quantity):
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise StockError('Quantity must be a whole number')
    if quantity <= 0:
        raise StockError('Quantity must be greater than zero')
    return quantity


def _locked_rows(item, **filters):
    return ItemStock.objects.select_for_update().filter(item=item, **filters).order_by('id')


def _unboxed_row(item, condition='good', condition_notes=''):
    row = _locked_rows(item, box__isnull=True).first()
    if row is None:
        row = ItemStock(item=item, box=None, condition=condition, condition_notes=condition_notes)
    return row


def merge_into_box(item, box, quantity, condition, notes=''):
    """
    Shelve ``quantity`` units into ``box``.

    An existing row for the item in that box absorbs the units and keeps the
    worse of the two conditions; otherwise a new row is created.
    """
    target = _locked_rows(item, box=box).first()
    if target is None:
        return ItemStock.objects.create(
            item=item,
            box=box,
            in_storage=quantity,
            condition=condition or 'good',
            condition_notes=notes or '',
        )
    target.in_storage += quantity
    target.condition = worse_condition(target.condition, condition)
    target.condition_notes = append_notes(target.condition_notes, notes)
    target.save()
    return target


# Intake

def register_intake(item, quantity, user, condition='good', condition_notes=''):
    """Record newly registered units as pending approval"""
    quantity = int(quantity or 0)
    if quantity <= 0:
        return None
    row = _unboxed_row(item, condition, condition_notes)
    row.pending += quantity
    if row.pk is None:
        row.condition = condition or 'good'
        row.condition_notes = condition_notes or ''
    row.save()
    record_movement(item, 'intake', quantity, 'none', 'pending', user=user, stock=row,
                    reference_id=item.product_code, reference_type='item')
    return row


def cleared_from_pending(item):
    """Units moved straight from pending into clearance before approval"""
    return StockMovement.objects.filter(
        item=item, from_state='pending', to_state='clearance'
    ).aggregate(total=Sum('quantity'))['total'] or 0


def expected_pending(item, total_stock=None):
    """Pending units an unapproved item should hold for its registered total"""
    total = item.total_stock if total_stock is None else int(total_stock)
    return max(total - cleared_from_pending(item), 0)


def resync_pending(item, total_stock, user):
    """Align the pending counter of an unapproved item with its new total"""
    row = _unboxed_row(item)
    target = expected_pending(item, total_stock)
    difference = target - row.pending
    if difference == 0:
        return row
    row.pending = target
    record_movement(
        item, 'adjustment', abs(difference),
        'none' if difference > 0 else 'pending',
        'pending' if difference > 0 else 'none',
        user=user, stock=row if row.pk else None,
        reference_id=item.product_code, reference_type='item',
        notes='Total stock changed before approval',
    )
    return save_or_delete(row)


def approve_intake(item, box, user, reference_id=''):
    """
    Move every pending unit of ``item`` into ``box``.

    Returns the box row, or None when nothing was pending (e.g. every
    unit went to clearance before approval).
    """
    rows = list(_locked_rows(item, pending__gt=0))
    quantity = sum(row.pending for row in rows)
    if quantity == 0:
        logger.info(f"Item {item.product_code} approved with no pending units")
        return None

    condition = rows[0].condition
    notes = rows[0].condition_notes
    for row in rows:
        condition = worse_condition(condition, row.condition)
        row.pending = 0
        save_or_delete(row)

    target = merge_into_box(item, box, quantity, condition, notes)
    record_movement(item, 'intake', quantity, 'pending', 'storage', user=user, stock=target,
                    to_box=box, reference_id=reference_id, reference_type='item_request')
    return target


def reject_intake(item, user, reference_id='', notes=''):
    """Drop pending units of a rejected item"""
    quantity = 0
    for row in _locked_rows(item, pending__gt=0):
        quantity += row.pending
        row.pending = 0
        save_or_delete(row)
    if quantity:
        record_movement(item, 'intake', quantity, 'pending', 'none', user=user,
                        reference_id=reference_id, reference_type='item_request', notes=notes)
    return quantity


# Borrowing

def borrow_from_storage(item, quantity, user, reference_id=''):
    """
    Take ``quantity`` units out of a box onto the item's borrowed row.

    The units must come from a single box row holding enough stock.
    """
    quantity = _validate_quantity(quantity)
    boxed = list(_locked_rows(item, box__isnull=False, in_storage__gt=0))
    source = next((row for row in boxed if row.in_storage >= quantity), None)
    if source is None:
        in_boxes = max((row.in_storage for row in boxed), default=0)
        total = sum(row.in_storage for row in boxed)
        raise StockError(
            f'Insufficient stock in a single box for {item.product_code}: requested {quantity}. '
            f'Available in boxes: {in_boxes}, Total available: {total}'
        )

    borrowed = _locked_rows(item, box__isnull=True).first()
    if borrowed is None:
        borrowed = ItemStock(
            item=item,
            box=None,
            condition=source.condition,
            condition_notes='Items currently on borrow',
        )
    borrowed.on_borrow += quantity
    borrowed.save()

    from_box = source.box
    source.in_storage -= quantity
    save_or_delete(source)

    record_movement(item, 'borrow', quantity, 'storage', 'borrowed', user=user, stock=borrowed,
                    from_box=from_box, reference_id=reference_id, reference_type='borrow_request')
    return from_box, borrowed


def _borrowed_row(item, quantity):
    row = _locked_rows(item, box__isnull=True, on_borrow__gte=quantity).first()
    if row is None:
        raise StockError(f'No borrowed stock of {item.product_code} covers {quantity} units')
    return row


def return_from_borrow(item, quantity, box, condition, user, notes='', reference_id=''):
    """Put borrowed units back into ``box``"""
    quantity = _validate_quantity(quantity)
    borrowed = _borrowed_row(item, quantity)
    target = merge_into_box(item, box, quantity, condition, notes)
    borrowed.on_borrow -= quantity
    save_or_delete(borrowed)
    record_movement(item, 'complete', quantity, 'borrowed', 'storage', user=user, stock=target,
                    to_box=box, reference_id=reference_id, reference_type='borrow_request_item',
                    notes=notes)
    return target


def seed_from_borrow(item, quantity, user, notes='', reference_id=''):
    """Mark borrowed units as lost or damaged"""
    quantity = _validate_quantity(quantity)
    borrowed = _borrowed_row(item, quantity)
    borrowed.on_borrow -= quantity
    borrowed.seeded += quantity
    borrowed.save()
    record_movement(item, 'seed', quantity, 'borrowed', 'seeded', user=user, stock=borrowed,
                    reference_id=reference_id, reference_type='borrow_request_item',
                    notes=notes or 'Item marked as seeded (lost or damaged)')
    return borrowed


def revert_seed(stock, box, quantity, condition, user, notes=''):
    """Return seeded units of ``stock`` to storage in ``box``"""
    quantity = _validate_quantity(quantity)
    stock = ItemStock.objects.select_for_update().get(pk=stock.pk)
    if stock.seeded < quantity:
        raise StockError(f'Only {stock.seeded} seeded units available on stock row {stock.pk}')

    stock_id = stock.pk
    item = stock.item
    target = merge_into_box(item, box, quantity, condition or stock.condition, notes)
    if target.pk == stock.pk:
        # Same row: it was reloaded by merge_into_box
        stock = ItemStock.objects.select_for_update().get(pk=stock.pk)
    stock.seeded -= quantity
    save_or_delete(stock)
    record_movement(item, 'revert_seed', quantity, 'seeded', 'storage', user=user, stock=target,
                    to_box=box, reference_id=stock_id, reference_type='item_stock', notes=notes)
    return target


def clear_seeded(stock, user, notes=''):
    """Write off every seeded unit of ``stock``"""
    stock = ItemStock.objects.select_for_update().get(pk=stock.pk)
    quantity = stock.seeded
    if quantity == 0:
        raise StockError(f'Stock row {stock.pk} has no seeded units')
    stock_id = stock.pk
    item = stock.item
    from_box = stock.box
    stock.seeded = 0
    remaining = save_or_delete(stock)
    record_movement(item, 'clearance', quantity, 'seeded', 'none', user=user, stock=remaining,
                    from_box=from_box, reference_id=stock_id, reference_type='item_stock', notes=notes)
    return quantity


# Box moves

def move_between_boxes(stock, destination_box, quantity, user, notes=''):
    """Move in-storage units from one stock row into another box"""
    quantity = _validate_quantity(quantity)
    source = ItemStock.objects.select_for_update().get(pk=stock.pk)
    if source.in_storage < quantity:
        raise StockError(
            f'Insufficient stock in source: requested {quantity}, available {source.in_storage}'
        )
    if source.box_id == destination_box.pk:
        raise StockError('Destination box must be different from the source box')

    from_box = source.box
    source.in_storage -= quantity
    save_or_delete(source)

    target = merge_into_box(source.item, destination_box, quantity, source.condition, notes)
    record_movement(source.item, 'adjustment', quantity, 'storage', 'storage', user=user, stock=target,
                    from_box=from_box, to_box=destination_box, reference_id=stock.pk,
                    reference_type='item_stock', notes=notes)
    return target


# Clearance

def move_to_clearance(item, quantity, user, reason='', reference_id='', reference_type='item_clearance',
                      movement_type='clearance', include_pending=True):
    """
    Reserve ``quantity`` units for clearance.

    Pending units are taken first, then in-storage units; the units stay on
    their stock row (and box) under ``in_clearance``.
    """
    quantity = _validate_quantity(quantity)
    rows = list(_locked_rows(item))
    pending_available = sum(row.pending for row in rows) if include_pending else 0
    storage_available = sum(row.in_storage for row in rows)
    if quantity > pending_available + storage_available:
        raise StockError(
            f'Insufficient stock for {item.product_code}: requested {quantity}, '
            f'available {pending_available + storage_available}'
        )

    remaining = quantity
    pending_cleared = 0
    storage_cleared = 0
    counters = (('pending', 'pending'), ('in_storage', 'storage')) if include_pending else (('in_storage', 'storage'),)
    for field, state in counters:
        for row in rows:
            if remaining == 0:
                break
            taken = min(getattr(row, field), remaining)
            if taken == 0:
                continue
            setattr(row, field, getattr(row, field) - taken)
            row.in_clearance += taken
            row.save()
            remaining -= taken
            if field == 'pending':
                pending_cleared += taken
            else:
                storage_cleared += taken
            record_movement(item, movement_type, taken, state, 'clearance', user=user, stock=row,
                            from_box=row.box, reference_id=reference_id, reference_type=reference_type,
                            notes=reason)

    return {'pending_cleared': pending_cleared, 'in_storage_cleared': storage_cleared}


def revert_from_clearance(item, quantity, user, notes='', reference_id='', reference_type='item_clearance',
                          movement_type='revert_clearance', reserved=None):
    """
    Move ``quantity`` units of ``item`` from clearance back to storage.

    ``reserved`` maps stock row ids to units held by open clearance forms;
    those units stay on their row.
    """
    quantity = _validate_quantity(quantity)
    reserved = reserved or {}
    rows = list(_locked_rows(item, in_clearance__gt=0))
    free = {row.pk: max(row.in_clearance - reserved.get(row.pk, 0), 0) for row in rows}
    available = sum(free.values())
    if quantity > available:
        raise StockError(
            f'Insufficient clearance stock for {item.product_code}: requested {quantity}, available {available}'
        )

    remaining = quantity
    for row in rows:
        if remaining == 0:
            break
        taken = min(free[row.pk], remaining)
        if taken == 0:
            continue
        row.in_clearance -= taken
        row.in_storage += taken
        row.save()
        remaining -= taken
        record_movement(item, movement_type, taken, 'clearance', 'storage', user=user, stock=row,
                        to_box=row.box, reference_id=reference_id, reference_type=reference_type,
                        notes=notes)
    return quantity


def release_clearance(stock, quantity, user, notes='', reference_id='', reference_type='clearance_form'):
    """Return reserved clearance units of one stock row to storage"""
    quantity = _validate_quantity(quantity)
    stock = ItemStock.objects.select_for_update().get(pk=stock.pk)
    released = min(quantity, stock.in_clearance)
    if released == 0:
        return 0
    stock.in_clearance -= released
    stock.in_storage += released
    stock.save()
    record_movement(stock.item, 'adjustment', released, 'clearance', 'storage', user=user, stock=stock,
                    to_box=stock.box, reference_id=reference_id, reference_type=reference_type, notes=notes)
    return released


def write_off_clearance(stock, quantity, user, notes='', reference_id='', reference_type='clearance_form'):
    """Remove cleared units of one stock row from inventory for good"""
    quantity = _validate_quantity(quantity)
    stock = ItemStock.objects.select_for_update().select_related('box', 'box__location').get(pk=stock.pk)
    if stock.in_clearance < quantity:
        raise StockError(
            f'Stock row {stock.pk} holds {stock.in_clearance} units in clearance, {quantity} requested'
        )
    item = stock.item
    from_box = stock.box
    stock.in_clearance -= quantity
    remaining = save_or_delete(stock)
    record_movement(item, 'clearance', quantity, 'clearance', 'none', user=user, stock=remaining,
                    from_box=from_box, reference_id=reference_id, reference_type=reference_type, notes=notes)
    return from_box
