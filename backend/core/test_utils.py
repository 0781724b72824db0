"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.core.models import Department
from backend.locations.models import Location, Box
from backend.catalog.models import Item, ItemRequest
from backend.inventory.models import ItemStock
from backend.borrowing.models import BorrowRequest, BorrowRequestItem
from backend.clearance.models import ClearanceForm, ClearanceFormItem
from datetime import timedelta
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def random_product_code(brand='SPE', division='11', category='00'):
        """Generate a valid product code"""
        return f"{brand}{division}{category}{''.join(random.choices(string.digits, k=5))}"

    @staticmethod
    def create_department(name=None):
        """Create a test department"""
        if not name:
            name = f'Department_{TestDataFactory.random_string(6)}'
        return Department.objects.create(name=name, description=f'Test department {name}')

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=User.ROLE_SUPERADMIN, department=None):
        """Create a test user with a warehouse role"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            name=username.replace('_', ' ').title(),
            role=role,
            department=department,
        )

    @staticmethod
    def create_location(name=None):
        """Create a test location"""
        if not name:
            name = f'Location_{TestDataFactory.random_string(6)}'
        return Location.objects.create(name=name, description=f'Test location {name}')

    @staticmethod
    def create_box(location=None, box_number=None):
        """Create a test box"""
        if not location:
            location = TestDataFactory.create_location()
        if not box_number:
            box_number = f'BOX-{TestDataFactory.random_string(4).upper()}'
        return Box.objects.create(location=location, box_number=box_number)

    @staticmethod
    def create_item(product_code=None, total_stock=10, status='approved', user=None, description=None):
        """Create a test item (no stock rows)"""
        if not product_code:
            product_code = TestDataFactory.random_product_code()
        return Item.objects.create(
            product_code=product_code,
            description=description or f'Test item {product_code}',
            brand_code=product_code[:3],
            product_division=product_code[3:5],
            product_category=product_code[5:7],
            total_stock=total_stock,
            period='2024-Q1',
            season='SS',
            unit_of_measure='PCS',
            status=status,
            created_by=user,
        )

    @staticmethod
    def create_pending_item(user=None, total_stock=10):
        """Create an item awaiting intake approval, with its pending stock and request"""
        item = TestDataFactory.create_item(total_stock=total_stock, status='pending_approval', user=user)
        ItemStock.objects.create(item=item, pending=total_stock)
        item_request = ItemRequest.objects.create(item=item, requested_by=user, status='pending')
        return item, item_request

    @staticmethod
    def create_stock(item=None, box=None, in_storage=10, condition='good', **counters):
        """Create a stock row; extra counters (on_borrow, seeded...) as keyword arguments"""
        if not item:
            item = TestDataFactory.create_item()
        return ItemStock.objects.create(item=item, box=box, in_storage=in_storage, condition=condition, **counters)

    @staticmethod
    def create_borrow_request(requester, items=None, status='pending_storage', days=7):
        """Create a borrow request; ``items`` is a list of (item, quantity) pairs"""
        now = timezone.now()
        borrow_request = BorrowRequest.objects.create(
            requester=requester,
            start_date=now,
            end_date=now + timedelta(days=days),
            reason='Photo shoot',
            status=status,
        )
        for item, quantity in items or []:
            BorrowRequestItem.objects.create(borrow_request=borrow_request, item=item, quantity=quantity, status=status)
        return borrow_request

    @staticmethod
    def create_clearance_form(user, lines=None, status='draft', form_number=None):
        """Create a clearance form; ``lines`` is a list of (stock, quantity) pairs"""
        if not form_number:
            form_number = f"CLR-{random.randint(0, 999999):06d}"
        form = ClearanceForm.objects.create(
            form_number=form_number,
            title='Quarterly write-off',
            period='2024-Q1',
            status=status,
            created_by=user,
        )
        for stock, quantity in lines or []:
            ClearanceFormItem.objects.create(form=form, item=stock.item, stock=stock, quantity=quantity,
                                             condition=stock.condition)
        return form


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
