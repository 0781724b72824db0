from django.db import models
from backend.catalog.models import Item
from backend.inventory.models import ItemStock


class ItemClearance(models.Model):
    """Units moved into (or, with a negative quantity, back out of) clearance"""
    STATUS_CHOICES = [
        ('completed', 'Completed'),
        ('reverted', 'Reverted'),
    ]

    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='clearances')
    stock = models.ForeignKey(ItemStock, on_delete=models.SET_NULL, null=True, blank=True, related_name='clearances')
    quantity = models.IntegerField()
    reason = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed', db_index=True)
    requested_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='item_clearances')
    reference = models.CharField(max_length=10, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.quantity} x {self.item_id} ({self.reference})"

    class Meta:
        db_table = 'item_clearances'
        ordering = ['-created_at', '-id']


class ClearanceForm(models.Model):
    """Write-off form grouping clearance stock for approval and processing"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('pending_approval', 'Pending Approval'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('processed', 'Processed'),
    ]

    # Forms still holding a claim on clearance stock
    OPEN_STATUSES = ('draft', 'pending_approval', 'approved')

    form_number = models.CharField(max_length=20, unique=True)
    title = models.CharField(max_length=255)
    period = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft', db_index=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='clearance_forms')
    approved_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_clearance_forms')
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='rejected_clearance_forms')
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    processed_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='processed_clearance_forms')
    processed_at = models.DateTimeField(null=True, blank=True)
    scanned_form = models.FileField(upload_to='clearance_forms/%Y/%m/', null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.form_number

    class Meta:
        db_table = 'clearance_forms'
        ordering = ['-created_at']


class ClearanceFormItem(models.Model):
    form = models.ForeignKey(ClearanceForm, on_delete=models.CASCADE, related_name='items')
    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='clearance_form_items')
    stock = models.ForeignKey(ItemStock, on_delete=models.SET_NULL, null=True, blank=True, related_name='clearance_form_items')
    quantity = models.PositiveIntegerField()
    condition = models.CharField(max_length=20, blank=True)
    condition_notes = models.TextField(blank=True)

    def __str__(self):
        return f"{self.quantity} x {self.item_id} on {self.form_id}"

    class Meta:
        db_table = 'clearance_form_items'
        ordering = ['id']


class ClearedItem(models.Model):
    """
    Historical record of units written off by a processed form.

    Item, box and location details are copied so the record outlives them.
    """
    form = models.ForeignKey(ClearanceForm, on_delete=models.SET_NULL, null=True, blank=True, related_name='cleared_items')
    form_number = models.CharField(max_length=20, db_index=True)
    product_code = models.CharField(max_length=50, db_index=True)
    description = models.TextField(blank=True)
    brand_code = models.CharField(max_length=10, blank=True)
    product_division = models.CharField(max_length=10, blank=True)
    product_category = models.CharField(max_length=10, blank=True)
    period = models.CharField(max_length=20, blank=True)
    season = models.CharField(max_length=10, blank=True)
    unit_of_measure = models.CharField(max_length=3, blank=True)
    quantity = models.PositiveIntegerField()
    condition = models.CharField(max_length=20, blank=True)
    notes = models.TextField(blank=True)
    box_id = models.BigIntegerField(null=True, blank=True)
    box_number = models.CharField(max_length=50, blank=True)
    location_id = models.BigIntegerField(null=True, blank=True)
    location_name = models.CharField(max_length=255, blank=True)
    cleared_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='cleared_items')
    cleared_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.quantity} x {self.product_code} ({self.form_number})"

    class Meta:
        db_table = 'cleared_items'
        ordering = ['-cleared_at', '-id']
