"""
Test suite for the borrow workflow
Tests: request creation, manager/storage approval, returns, seeding and visibility
"""
from datetime import timedelta
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from backend.core.models import User
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.borrowing.models import BorrowRequest, BorrowRequestItem
from backend.inventory.models import ItemStock, StockMovement
from backend.inventory.services import item_stock_totals


class BorrowRequestModelTests(TestCase):
    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_is_overdue(self):
        """Test only active requests past their end date are overdue"""
        borrow_request = TestDataFactory.create_borrow_request(self.user, status='active', days=-1)
        self.assertTrue(borrow_request.is_overdue)
        borrow_request.status = 'complete'
        self.assertFalse(borrow_request.is_overdue)

    def test_item_is_resolved(self):
        """Test complete and seeded lines count as resolved"""
        item = TestDataFactory.create_item()
        borrow_request = TestDataFactory.create_borrow_request(self.user, items=[(item, 1)], status='active')
        line = borrow_request.items.get()
        self.assertFalse(line.is_resolved)
        line.status = 'seeded'
        self.assertTrue(line.is_resolved)


class BorrowRequestCreateTests(TestCase):
    """Creating borrow requests"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.client.authenticate_user(self.user)
        self.item = TestDataFactory.create_item()
        self.box = TestDataFactory.create_box()
        TestDataFactory.create_stock(item=self.item, box=self.box, in_storage=5)

    def _payload(self, items, **overrides):
        now = timezone.now()
        data = {
            'items': items,
            'start_date': (now + timedelta(hours=1)).isoformat(),
            'end_date': (now + timedelta(days=7)).isoformat(),
            'reason': 'Product photo shoot',
        }
        data.update(overrides)
        return data

    def test_user_request_awaits_manager(self):
        """Test a request by a regular user starts at manager approval"""
        response = self.client.post('/api/borrow-requests/', self._payload(
            [{'product_code': self.item.product_code, 'quantity': 2}]
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending_manager')
        self.assertEqual(response.data['department_name'], self.department.name)
        self.assertEqual(response.data['items'][0]['status'], 'pending_manager')

    def test_storage_role_skips_manager(self):
        """Test requests by other roles go straight to storage approval"""
        storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.client.authenticate_user(storage_master)
        response = self.client.post('/api/borrow-requests/', self._payload(
            [{'product_code': self.item.product_code, 'quantity': 1}]
        ), format='json')
        self.assertEqual(response.data['status'], 'pending_storage')

    def test_duplicate_lines_are_merged(self):
        """Test repeated product codes are merged into one line"""
        response = self.client.post('/api/borrow-requests/', self._payload([
            {'product_code': self.item.product_code, 'quantity': 2},
            {'product_code': self.item.product_code.lower(), 'quantity': 1},
        ]), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['total_quantity'], 3)

    def test_insufficient_stock(self):
        """Test requesting more than is in storage fails"""
        response = self.client.post('/api/borrow-requests/', self._payload(
            [{'product_code': self.item.product_code, 'quantity': 6}]
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])

    def test_unapproved_item(self):
        """Test pending items cannot be borrowed"""
        pending, _ = TestDataFactory.create_pending_item()
        response = self.client.post('/api/borrow-requests/', self._payload(
            [{'product_code': pending.product_code, 'quantity': 1}]
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_start_date_in_past(self):
        """Test a start date before today is rejected"""
        response = self.client.post('/api/borrow-requests/', self._payload(
            [{'product_code': self.item.product_code, 'quantity': 1}],
            start_date=(timezone.now() - timedelta(days=3)).isoformat(),
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('start_date', response.data['details'])

    def test_end_before_start(self):
        """Test the end date must follow the start date"""
        now = timezone.now()
        response = self.client.post('/api/borrow-requests/', self._payload(
            [{'product_code': self.item.product_code, 'quantity': 1}],
            start_date=(now + timedelta(days=2)).isoformat(),
            end_date=(now + timedelta(days=1)).isoformat(),
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_empty_items(self):
        """Test a request needs at least one item"""
        response = self.client.post('/api/borrow-requests/', self._payload([]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class BorrowApprovalTests(TestCase):
    """Manager and storage approval"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.other_department = TestDataFactory.create_department()
        self.user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER, department=self.department)
        self.storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.item = TestDataFactory.create_item()
        self.box = TestDataFactory.create_box()
        self.stock = TestDataFactory.create_stock(item=self.item, box=self.box, in_storage=5)
        self.borrow_request = TestDataFactory.create_borrow_request(
            self.user, items=[(self.item, 3)], status='pending_manager'
        )

    def test_manager_approval(self):
        """Test the department manager moves the request to storage approval"""
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/approve/',
                                    {'approval_type': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['borrow_request']['status'], 'pending_storage')
        self.assertEqual(self.borrow_request.items.get().status, 'pending_storage')

    def test_manager_of_other_department(self):
        """Test managers cannot approve requests of other departments"""
        outsider = TestDataFactory.create_user(role=User.ROLE_MANAGER, department=self.other_department)
        self.client.authenticate_user(outsider)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/approve/',
                                    {'approval_type': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_storage_approval_out_of_order(self):
        """Test storage approval needs the manager step first"""
        self.client.authenticate_user(self.storage_master)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/approve/',
                                    {'approval_type': 'storage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(BORROW_PERIOD_DAYS=10)
    def test_storage_approval_moves_stock(self):
        """Test storage approval puts units on borrow and sets the loan period"""
        self.borrow_request.status = 'pending_storage'
        self.borrow_request.save()
        self.client.authenticate_user(self.storage_master)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/approve/',
                                    {'approval_type': 'storage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.borrow_request.refresh_from_db()
        self.assertEqual(self.borrow_request.status, 'active')
        period = self.borrow_request.end_date - self.borrow_request.start_date
        self.assertEqual(period, timedelta(days=10))

        line = self.borrow_request.items.get()
        self.assertEqual(line.status, 'active')
        self.assertEqual(line.box, self.box)

        totals = item_stock_totals(self.item)
        self.assertEqual(totals['in_storage'], 2)
        self.assertEqual(totals['on_borrow'], 3)
        self.assertTrue(StockMovement.objects.filter(movement_type='borrow', reference_id=str(self.borrow_request.id)).exists())

    def test_storage_approval_without_stock(self):
        """Test approval fails and rolls back when stock is short"""
        second = TestDataFactory.create_item()
        TestDataFactory.create_stock(item=second, box=self.box, in_storage=1)
        BorrowRequestItem.objects.create(borrow_request=self.borrow_request, item=second, quantity=4,
                                         status='pending_storage')
        self.borrow_request.status = 'pending_storage'
        self.borrow_request.save()

        self.client.authenticate_user(self.storage_master)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/approve/',
                                    {'approval_type': 'storage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Total available: 1', response.data['error'])
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.in_storage, 5)

    def test_reject_requires_reason(self):
        """Test rejection needs a reason"""
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/reject/',
                                    {'rejection_type': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_rejection(self):
        """Test manager rejection records the reason"""
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/reject/',
                                    {'rejection_type': 'manager', 'reason': 'Not needed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.borrow_request.refresh_from_db()
        self.assertEqual(self.borrow_request.status, 'rejected')
        self.assertEqual(self.borrow_request.manager_rejection_reason, 'Not needed')
        self.assertEqual(self.borrow_request.items.get().status, 'rejected')

    def test_invalid_approval_type(self):
        """Test an unknown approval type is rejected"""
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/approve/',
                                    {'approval_type': 'finance'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class BorrowReturnTests(TestCase):
    """Completing and seeding active requests"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.client.authenticate_user(self.storage_master)
        self.box = TestDataFactory.create_box()
        self.return_box = TestDataFactory.create_box()
        self.shoe = TestDataFactory.create_item()
        self.shirt = TestDataFactory.create_item()
        TestDataFactory.create_stock(item=self.shoe, box=None, in_storage=0, on_borrow=2)
        TestDataFactory.create_stock(item=self.shirt, box=None, in_storage=0, on_borrow=1)
        self.borrow_request = TestDataFactory.create_borrow_request(
            self.user, items=[(self.shoe, 2), (self.shirt, 1)], status='active'
        )
        self.shoe_line = self.borrow_request.items.get(item=self.shoe)
        self.shirt_line = self.borrow_request.items.get(item=self.shirt)

    def test_partial_completion(self):
        """Test returning one line keeps the request active"""
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/complete/', {'items': [{
            'borrow_request_item_id': self.shoe_line.id,
            'status': 'complete',
            'return_condition': 'fair',
            'box_id': self.return_box.id,
            'return_notes': 'Sole worn',
        }]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['borrow_request_status'], 'active')
        self.assertTrue(response.data['end_date_updated'])

        stock = ItemStock.objects.get(item=self.shoe, box=self.return_box)
        self.assertEqual(stock.in_storage, 2)
        self.assertEqual(stock.condition, 'fair')
        self.shoe_line.refresh_from_db()
        self.assertEqual(self.shoe_line.status, 'complete')
        self.assertEqual(self.shoe_line.return_box, self.return_box)

    def test_full_completion_with_seed(self):
        """Test resolving every line completes the request"""
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/complete/', {'items': [
            {'borrow_request_item_id': self.shoe_line.id, 'status': 'complete',
             'return_condition': 'good', 'box_id': self.return_box.id},
            {'borrow_request_item_id': self.shirt_line.id, 'status': 'seeded', 'return_notes': 'Lost at venue'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['borrow_request_status'], 'complete')
        self.assertEqual(response.data['items_processed'], 2)
        self.assertEqual(item_stock_totals(self.shirt)['seeded'], 1)

    def test_complete_requires_box(self):
        """Test returned lines need a box and condition"""
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/complete/', {'items': [
            {'borrow_request_item_id': self.shoe_line.id, 'status': 'complete', 'return_condition': 'good'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_line_twice(self):
        """Test a resolved line cannot be processed again"""
        entry = {'borrow_request_item_id': self.shoe_line.id, 'status': 'complete',
                 'return_condition': 'good', 'box_id': self.return_box.id}
        self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/complete/', {'items': [entry]}, format='json')
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/complete/', {'items': [entry]},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('already complete', response.data['error'])

    def test_seed_all_lines(self):
        """Test seeding every line marks the request seeded"""
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/seed/', {'items': [
            {'borrow_request_item_id': self.shoe_line.id, 'reason': 'Damaged'},
            {'borrow_request_item_id': self.shirt_line.id},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['borrow_request_status'], 'seeded')
        self.assertEqual(item_stock_totals(self.shoe)['seeded'], 2)
        self.assertEqual(item_stock_totals(self.shoe)['on_borrow'], 0)

    def test_complete_inactive_request(self):
        """Test pending requests cannot be completed"""
        pending = TestDataFactory.create_borrow_request(self.user, items=[(self.shoe, 1)], status='pending_storage')
        response = self.client.post(f'/api/borrow-requests/{pending.id}/complete/', {'items': [
            {'borrow_request_item_id': pending.items.get().id, 'status': 'seeded'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_regular_user_cannot_complete(self):
        """Test only storage masters process returns"""
        self.client.authenticate_user(self.user)
        response = self.client.post(f'/api/borrow-requests/{self.borrow_request.id}/seed/', {'items': [
            {'borrow_request_item_id': self.shoe_line.id},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class BorrowVisibilityTests(TestCase):
    """Who sees which borrow requests"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.department = TestDataFactory.create_department()
        self.other_department = TestDataFactory.create_department()
        self.user = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.colleague = TestDataFactory.create_user(role=User.ROLE_USER, department=self.department)
        self.outsider = TestDataFactory.create_user(role=User.ROLE_USER, department=self.other_department)
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER, department=self.department)
        self.own = TestDataFactory.create_borrow_request(self.user)
        TestDataFactory.create_borrow_request(self.colleague)
        self.foreign = TestDataFactory.create_borrow_request(self.outsider, status='active', days=-2)

    def test_user_sees_own_requests(self):
        """Test users only see their own requests"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/borrow-requests/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.own.id)

    def test_manager_sees_department(self):
        """Test managers see their department's requests"""
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/borrow-requests/')
        self.assertEqual(response.data['count'], 2)

    def test_storage_sees_everything(self):
        """Test storage roles see every request"""
        storage_master = TestDataFactory.create_user(role=User.ROLE_STORAGE_MASTER, department=self.department)
        self.client.authenticate_user(storage_master)
        response = self.client.get('/api/borrow-requests/')
        self.assertEqual(response.data['count'], 3)

    def test_hidden_request_detail(self):
        """Test requests outside the user's scope answer 404"""
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/borrow-requests/{self.foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_overdue(self):
        """Test the overdue list holds active requests past their end date"""
        admin = TestDataFactory.create_user()
        self.client.authenticate_user(admin)
        response = self.client.get('/api/borrow-requests/overdue/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([entry['id'] for entry in response.data], [self.foreign.id])
        self.assertTrue(response.data[0]['is_overdue'])
