"""
Test suite for stock counters, state transitions and the inventory endpoints
Tests: intake, borrowing, seeding, box moves, clearance and movement logging
"""
from io import StringIO
from django.core.cache import cache
from django.core.management import call_command
from django.db import transaction
from django.test import TestCase
from rest_framework import status
from backend.core.models import User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory import services
from backend.inventory.models import ItemStock, StockMovement


class ConditionTests(TestCase):
    def test_worse_condition(self):
        """Test the worse of two conditions wins"""
        self.assertEqual(services.worse_condition('excellent', 'fair'), 'fair')
        self.assertEqual(services.worse_condition('poor', 'good'), 'poor')
        self.assertEqual(services.worse_condition(None, 'good'), 'good')

    def test_append_notes_stamps_entries(self):
        """Test notes are appended on a new timestamped line"""
        notes = services.append_notes('first', 'second')
        lines = notes.split('\n')
        self.assertEqual(lines[0], 'first')
        self.assertTrue(lines[1].startswith('['))
        self.assertTrue(lines[1].endswith('] second'))
        self.assertEqual(services.append_notes('keep', ''), 'keep')


class IntakeServiceTests(TestCase):
    """Pending units and intake approval"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.box = TestDataFactory.create_box()

    def test_register_intake_creates_pending_row(self):
        """Test registering an item records pending units and an intake movement"""
        item = TestDataFactory.create_item(status='pending_approval')
        row = services.register_intake(item, 5, self.user, condition='fair')
        self.assertIsNone(row.box)
        self.assertEqual(row.pending, 5)
        self.assertEqual(row.condition, 'fair')
        movement = StockMovement.objects.get(item=item)
        self.assertEqual((movement.from_state, movement.to_state), ('none', 'pending'))

    def test_approve_intake_moves_pending_to_box(self):
        """Test approval moves every pending unit into the box"""
        item, _ = TestDataFactory.create_pending_item(user=self.user, total_stock=8)
        with transaction.atomic():
            target = services.approve_intake(item, self.box, self.user, reference_id='1')
        self.assertEqual(target.box, self.box)
        self.assertEqual(target.in_storage, 8)
        totals = services.item_stock_totals(item)
        self.assertEqual(totals['pending'], 0)
        self.assertEqual(totals['in_storage'], 8)
        self.assertEqual(ItemStock.objects.filter(item=item).count(), 1)

    def test_approve_intake_merges_into_existing_row(self):
        """Test approval merges into the item's row in that box with the worse condition"""
        item, _ = TestDataFactory.create_pending_item(user=self.user, total_stock=3)
        ItemStock.objects.filter(item=item, box__isnull=True).update(condition='poor')
        existing = TestDataFactory.create_stock(item=item, box=self.box, in_storage=2, condition='good')
        target = services.approve_intake(item, self.box, self.user)
        self.assertEqual(target.pk, existing.pk)
        self.assertEqual(target.in_storage, 5)
        self.assertEqual(target.condition, 'poor')

    def test_approve_without_pending_units(self):
        """Test approval with nothing pending shelves nothing and records no movement"""
        item = TestDataFactory.create_item(status='pending_approval')
        self.assertIsNone(services.approve_intake(item, self.box, self.user))
        self.assertFalse(ItemStock.objects.filter(item=item).exists())
        self.assertFalse(StockMovement.objects.filter(item=item).exists())

    def test_register_intake_without_units(self):
        """Test registering zero units leaves no empty stock row"""
        item = TestDataFactory.create_item(status='pending_approval', total_stock=0)
        self.assertIsNone(services.register_intake(item, 0, self.user))
        self.assertFalse(ItemStock.objects.filter(item=item).exists())

    def test_reject_intake_drops_pending(self):
        """Test rejection removes pending units and the empty row"""
        item, _ = TestDataFactory.create_pending_item(user=self.user, total_stock=4)
        self.assertEqual(services.reject_intake(item, self.user, notes='Wrong item'), 4)
        self.assertFalse(ItemStock.objects.filter(item=item).exists())

    def test_resync_pending(self):
        """Test editing the total of an unapproved item adjusts pending units"""
        item, _ = TestDataFactory.create_pending_item(user=self.user, total_stock=4)
        row = services.resync_pending(item, 9, self.user)
        self.assertEqual(row.pending, 9)
        self.assertTrue(StockMovement.objects.filter(item=item, movement_type='adjustment').exists())

    def test_resync_after_pending_cleared(self):
        """Test resync leaves out pending units already moved to clearance"""
        item, _ = TestDataFactory.create_pending_item(user=self.user, total_stock=3)
        services.move_to_clearance(item, 2, self.user, reason='Damaged')
        self.assertEqual(services.expected_pending(item), 1)

        services.resync_pending(item, 5, self.user)
        totals = services.item_stock_totals(item)
        self.assertEqual(totals['pending'], 3)
        self.assertEqual(totals['in_clearance'], 2)
        self.assertEqual(totals['total'], 5)

class BorrowServiceTests(TestCase):
    """Borrow, return and seeding transitions"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.item = TestDataFactory.create_item()
        self.box_a = TestDataFactory.create_box()
        self.box_b = TestDataFactory.create_box(location=self.box_a.location)
        self.stock_a = TestDataFactory.create_stock(item=self.item, box=self.box_a, in_storage=3)
        self.stock_b = TestDataFactory.create_stock(item=self.item, box=self.box_b, in_storage=6)

    def test_borrow_takes_from_single_box(self):
        """Test borrowing uses the first box holding enough units"""
        from_box, borrowed = services.borrow_from_storage(self.item, 5, self.user, reference_id='7')
        self.assertEqual(from_box, self.box_b)
        self.assertIsNone(borrowed.box)
        self.assertEqual(borrowed.on_borrow, 5)
        self.stock_b.refresh_from_db()
        self.assertEqual(self.stock_b.in_storage, 1)

    def test_borrow_more_than_any_box(self):
        """Test borrowing more than a single box holds reports availability"""
        with self.assertRaises(services.StockError) as ctx:
            services.borrow_from_storage(self.item, 7, self.user)
        self.assertIn('Available in boxes: 6, Total available: 9', str(ctx.exception))

    def test_return_from_borrow(self):
        """Test returned units go into the chosen box"""
        from_box, _ = services.borrow_from_storage(self.item, 3, self.user)
        self.assertEqual(from_box, self.box_a)
        self.assertFalse(ItemStock.objects.filter(pk=self.stock_a.pk).exists())
        target = services.return_from_borrow(self.item, 3, self.box_b, 'fair', self.user, notes='Scratched')
        self.assertEqual(target.pk, self.stock_b.pk)
        self.assertEqual(target.in_storage, 9)
        self.assertEqual(target.condition, 'fair')
        totals = services.item_stock_totals(self.item)
        self.assertEqual(totals['on_borrow'], 0)
        self.assertEqual(totals['total'], 9)

    def test_seed_and_revert(self):
        """Test seeded units can be returned to storage"""
        services.borrow_from_storage(self.item, 2, self.user)
        seeded = services.seed_from_borrow(self.item, 2, self.user)
        self.assertEqual(seeded.seeded, 2)
        self.assertEqual(seeded.on_borrow, 0)

        target = services.revert_seed(seeded, self.box_a, 1, None, self.user)
        self.assertEqual(target.pk, self.stock_a.pk)
        self.assertEqual(services.item_stock_totals(self.item)['seeded'], 1)
        movement = StockMovement.objects.get(movement_type='revert_seed')
        self.assertEqual(movement.reference_id, str(seeded.pk))

    def test_clear_seeded(self):
        """Test writing off seeded units removes them from the totals"""
        services.borrow_from_storage(self.item, 2, self.user)
        seeded = services.seed_from_borrow(self.item, 2, self.user)
        self.assertEqual(services.clear_seeded(seeded, self.user), 2)
        self.assertEqual(services.item_stock_totals(self.item)['total'], 7)
        self.assertFalse(ItemStock.objects.filter(pk=seeded.pk).exists())

    def test_invalid_quantity(self):
        """Test zero quantities are rejected"""
        with self.assertRaises(services.StockError):
            services.borrow_from_storage(self.item, 0, self.user)


class ClearanceServiceTests(TestCase):
    """Clearance reservations"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.item, _ = TestDataFactory.create_pending_item(user=self.user, total_stock=2)
        self.box = TestDataFactory.create_box()
        self.stock = TestDataFactory.create_stock(item=self.item, box=self.box, in_storage=5)

    def test_pending_units_cleared_first(self):
        """Test clearance takes pending units before in-storage units"""
        result = services.move_to_clearance(self.item, 4, self.user, reason='Damaged')
        self.assertEqual(result, {'pending_cleared': 2, 'in_storage_cleared': 2})
        totals = services.item_stock_totals(self.item)
        self.assertEqual(totals['in_clearance'], 4)
        self.assertEqual(totals['in_storage'], 3)
        self.assertEqual(totals['total'], 7)

    def test_clearance_beyond_available(self):
        """Test clearing more than pending plus storage fails"""
        with self.assertRaises(services.StockError):
            services.move_to_clearance(self.item, 8, self.user)

    def test_revert_returns_to_storage(self):
        """Test reverting moves clearance units to storage"""
        services.move_to_clearance(self.item, 3, self.user, include_pending=False)
        services.revert_from_clearance(self.item, 3, self.user)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_storage, 5)
        self.assertEqual(self.stock.in_clearance, 0)

    def test_write_off(self):
        """Test write-off removes units and returns the source box"""
        services.move_to_clearance(self.item, 5, self.user, include_pending=False)
        from_box = services.write_off_clearance(self.stock, 5, self.user, reference_id='CLR-000001')
        self.assertEqual(from_box, self.box)
        self.assertFalse(ItemStock.objects.filter(pk=self.stock.pk).exists())
        self.assertEqual(services.item_stock_totals(self.item)['total'], 2)

    def test_revert_skips_reserved_rows(self):
        """Test units reserved on the first row stay in clearance while a later row is reverted"""
        services.move_to_clearance(self.item, 3, self.user, include_pending=False)
        other_box = TestDataFactory.create_box()
        other_row = TestDataFactory.create_stock(item=self.item, box=other_box, in_storage=0, in_clearance=4)
        reserved = {self.stock.pk: 3}

        services.revert_from_clearance(self.item, 4, self.user, reserved=reserved)
        self.stock.refresh_from_db()
        other_row.refresh_from_db()
        self.assertEqual(self.stock.in_clearance, 3)
        self.assertEqual(other_row.in_clearance, 0)
        self.assertEqual(other_row.in_storage, 4)
        with self.assertRaises(services.StockError):
            services.revert_from_clearance(self.item, 1, self.user, reserved=reserved)


class StockEndpointTests(TestCase):
    """Stock rows, summary, box moves and seeded items over the API"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.client.authenticate_user(self.storage_master)
        self.item = TestDataFactory.create_item(description='Running shoe')
        self.box = TestDataFactory.create_box()
        self.other_box = TestDataFactory.create_box()
        self.stock = TestDataFactory.create_stock(item=self.item, box=self.box, in_storage=6)

    def test_stock_list_is_paginated(self):
        """Test the stock list uses the paginated envelope"""
        response = self.client.get('/api/stock-items/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['product_code'], self.item.product_code)

    def test_stock_list_search(self):
        """Test searching stock rows by description"""
        TestDataFactory.create_stock(in_storage=1)
        response = self.client.get('/api/stock-items/', {'search': 'running'})
        self.assertEqual(response.data['count'], 1)

    def test_summary(self):
        """Test the summary adds up every counter"""
        TestDataFactory.create_stock(item=self.item, box=None, in_storage=0, on_borrow=2, seeded=1)
        response = self.client.get('/api/stock-items/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['in_storage'], 6)
        self.assertEqual(response.data['on_borrow'], 2)
        self.assertEqual(response.data['seeded'], 1)
        self.assertEqual(response.data['total'], 9)

    def test_move_between_boxes(self):
        """Test moving units to another box"""
        data = {
            'product_code': self.item.product_code,
            'source_stock_id': self.stock.id,
            'destination_box_id': self.other_box.id,
            'quantity': 4,
        }
        response = self.client.post('/api/item-movements/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stock']['in_storage'], 4)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_storage, 2)

        listing = self.client.get('/api/item-movements/', {'item': self.item.product_code})
        self.assertEqual(listing.data['total'], 1)

    def test_move_more_than_available(self):
        """Test moving more units than the source holds"""
        data = {
            'product_code': self.item.product_code,
            'source_stock_id': self.stock.id,
            'destination_box_id': self.other_box.id,
            'quantity': 10,
        }
        response = self.client.post('/api/item-movements/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])

    def test_move_to_same_box(self):
        """Test the destination must differ from the source box"""
        data = {
            'product_code': self.item.product_code,
            'source_stock_id': self.stock.id,
            'destination_box_id': self.box.id,
            'quantity': 1,
        }
        response = self.client.post('/api/item-movements/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_move_requires_mover_role(self):
        """Test item masters cannot move stock"""
        item_master = TestDataFactory.create_user(role=User.ROLE_ITEM_MASTER, department=self.department)
        self.client.authenticate_user(item_master)
        data = {
            'product_code': self.item.product_code,
            'source_stock_id': self.stock.id,
            'destination_box_id': self.other_box.id,
            'quantity': 1,
        }
        response = self.client.post('/api/item-movements/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_seeded_items_return_and_clear(self):
        """Test listing, returning and writing off seeded units"""
        seeded = TestDataFactory.create_stock(item=self.item, box=None, in_storage=0, seeded=3)
        listing = self.client.get('/api/seeded-items/')
        self.assertEqual(listing.data['total'], 1)

        response = self.client.post('/api/seeded-items/', {
            'items': [{'stock_id': seeded.id, 'box_id': self.box.id, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_storage, 7)

        response = self.client.delete('/api/seeded-items/', {'stock_ids': [seeded.id, 999999]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['cleared'][0]['quantity'], 2)
        self.assertEqual(response.data['errors'][0]['stock_id'], 999999)

    def test_clear_seeded_accepts_string_ids(self):
        """Test stock ids sent as strings are written off without a not-found error"""
        seeded = TestDataFactory.create_stock(item=self.item, box=None, in_storage=0, seeded=2)
        response = self.client.delete('/api/seeded-items/', {'stock_ids': [str(seeded.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['cleared'][0]['quantity'], 2)
        self.assertEqual(response.data['errors'], [])

        response = self.client.delete('/api/seeded-items/', {'stock_ids': ['abc']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_movement_log_filter(self):
        """Test filtering the movement log by type"""
        services.borrow_from_storage(self.item, 1, self.storage_master)
        response = self.client.get('/api/stock-movements/', {'type': 'borrow'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)


class CheckStockSyncCommandTests(TestCase):
    def test_reports_and_fixes_mismatches(self):
        """Test the command resyncs pending counters and removes empty rows"""
        item, _request = TestDataFactory.create_pending_item(total_stock=5)
        ItemStock.objects.filter(item=item).update(pending=3)
        empty = TestDataFactory.create_stock(in_storage=0)

        out = StringIO()
        call_command('check_stock_sync', stdout=out)
        self.assertIn(f"{item.product_code}: total stock 5, expected pending 5, pending 3", out.getvalue())
        self.assertIn('Empty rows: 1', out.getvalue())
        self.assertTrue(ItemStock.objects.filter(pk=empty.pk).exists())

        call_command('check_stock_sync', '--fix', stdout=StringIO())
        self.assertEqual(ItemStock.objects.get(item=item).pending, 5)
        self.assertFalse(ItemStock.objects.filter(pk=empty.pk).exists())
        self.assertTrue(StockMovement.objects.filter(item=item, movement_type='adjustment').exists())

    def test_cleared_pending_units_are_not_recreated(self):
        """Test a pending item cleared in full is left alone by --fix"""
        item, _request = TestDataFactory.create_pending_item(total_stock=3)
        services.move_to_clearance(item, 3, None, reason='Damaged')

        out = StringIO()
        call_command('check_stock_sync', '--fix', stdout=out)
        self.assertIn('No pending mismatches found', out.getvalue())
        totals = services.item_stock_totals(item)
        self.assertEqual(totals['pending'], 0)
        self.assertEqual(totals['in_clearance'], 3)
        self.assertEqual(totals['total'], 3)
