from django.db import models
from django.utils import timezone
from backend.catalog.models import Item
from backend.locations.models import Box


class BorrowRequest(models.Model):
    """Request to take items out of storage for a period"""
    STATUS_CHOICES = [
        ('pending_manager', 'Pending Manager Approval'),
        ('pending_storage', 'Pending Storage Approval'),
        ('active', 'Active'),
        ('complete', 'Complete'),
        ('seeded', 'Seeded'),
        ('rejected', 'Rejected'),
    ]

    OPEN_STATUSES = ('pending_manager', 'pending_storage', 'active')

    requester = models.ForeignKey('core.User', on_delete=models.PROTECT, related_name='borrow_requests')
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    reason = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending_manager', db_index=True)

    manager_approved_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='manager_approved_borrows')
    manager_approved_at = models.DateTimeField(null=True, blank=True)
    manager_rejected_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='manager_rejected_borrows')
    manager_rejected_at = models.DateTimeField(null=True, blank=True)
    manager_rejection_reason = models.TextField(blank=True)

    storage_approved_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='storage_approved_borrows')
    storage_approved_at = models.DateTimeField(null=True, blank=True)
    storage_rejected_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='storage_rejected_borrows')
    storage_rejected_at = models.DateTimeField(null=True, blank=True)
    storage_rejection_reason = models.TextField(blank=True)

    completed_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='completed_borrows')
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_overdue(self):
        return self.status == 'active' and self.end_date < timezone.now()

    def __str__(self):
        return f"Borrow #{self.id} ({self.status})"

    class Meta:
        db_table = 'borrow_requests'
        ordering = ['-created_at']


class BorrowRequestItem(models.Model):
    """One item line of a borrow request"""
    STATUS_CHOICES = BorrowRequest.STATUS_CHOICES

    RESOLVED_STATUSES = ('complete', 'seeded')

    borrow_request = models.ForeignKey(BorrowRequest, on_delete=models.CASCADE, related_name='items')
    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='borrow_items')
    quantity = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending_manager')
    # Box the units were taken from when the loan started
    box = models.ForeignKey(Box, on_delete=models.SET_NULL, null=True, blank=True, related_name='borrowed_items')
    return_box = models.ForeignKey(Box, on_delete=models.SET_NULL, null=True, blank=True, related_name='returned_items')
    return_condition = models.CharField(max_length=20, blank=True)
    return_notes = models.TextField(blank=True)
    completed_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='completed_borrow_items')
    completed_at = models.DateTimeField(null=True, blank=True)
    seeded_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='seeded_borrow_items')
    seeded_at = models.DateTimeField(null=True, blank=True)

    @property
    def is_resolved(self):
        return self.status in self.RESOLVED_STATUSES

    def __str__(self):
        return f"{self.quantity} x {self.item_id} (borrow #{self.borrow_request_id})"

    class Meta:
        db_table = 'borrow_request_items'
        ordering = ['id']
