from django.contrib.auth.models import AbstractUser
from django.db import models


class Department(models.Model):
    """Organisational unit users belong to; managers approve loans for their department"""
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'departments'
        ordering = ['name']


class User(AbstractUser):
    """Extended user model with warehouse role and department"""
    ROLE_SUPERADMIN = 'superadmin'
    ROLE_ITEM_MASTER = 'item-master'
    ROLE_STORAGE_MASTER = 'storage-master'
    ROLE_STORAGE_MASTER_MANAGER = 'storage-master-manager'
    ROLE_STORAGE_MANAGER = 'storage-manager'
    ROLE_MANAGER = 'manager'
    ROLE_USER = 'user'

    ROLE_CHOICES = [
        (ROLE_SUPERADMIN, 'Super Admin'),
        (ROLE_ITEM_MASTER, 'Item Master'),
        (ROLE_STORAGE_MASTER, 'Storage Master'),
        (ROLE_STORAGE_MASTER_MANAGER, 'Storage Master Manager'),
        (ROLE_STORAGE_MANAGER, 'Storage Manager'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_USER, 'User'),
    ]

    name = models.CharField(max_length=255, blank=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default=ROLE_USER)
    department = models.ForeignKey(Department, on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def display_name(self):
        return self.name or self.get_full_name() or self.username

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for warehouse operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('item_approve', 'Item Approved'),
        ('item_reject', 'Item Rejected'),
        ('item_archive', 'Item Archived'),
        ('item_unarchive', 'Item Unarchived'),
        ('item_import', 'Items Imported'),
        ('stock_move', 'Stock Moved'),
        ('borrow_create', 'Borrow Request Created'),
        ('borrow_approve', 'Borrow Request Approved'),
        ('borrow_reject', 'Borrow Request Rejected'),
        ('borrow_complete', 'Borrow Items Returned'),
        ('borrow_seed', 'Borrow Items Seeded'),
        ('seed_revert', 'Seeded Items Returned'),
        ('seed_clear', 'Seeded Items Written Off'),
        ('clearance_add', 'Moved to Clearance'),
        ('clearance_revert', 'Reverted from Clearance'),
        ('clearance_import', 'Clearance Imported'),
        ('form_submit', 'Clearance Form Submitted'),
        ('form_approve', 'Clearance Form Approved'),
        ('form_reject', 'Clearance Form Rejected'),
        ('form_process', 'Clearance Form Processed'),
        ('form_upload', 'Scanned Form Uploaded'),
        ('erp_relay', 'Stock Relayed to ERP'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product code, form number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
        ]
