from django.db import models


class Item(models.Model):
    """Catalog item keyed by its product code"""
    STATUS_CHOICES = [
        ('pending_approval', 'Pending Approval'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('archived', 'Archived'),
    ]

    UNIT_CHOICES = [
        ('PCS', 'Pieces'),
        ('PRS', 'Pairs'),
    ]

    product_code = models.CharField(max_length=50, primary_key=True)
    description = models.TextField()
    brand_code = models.CharField(max_length=10, db_index=True)
    product_division = models.CharField(max_length=10, db_index=True)
    product_category = models.CharField(max_length=10, db_index=True)
    total_stock = models.PositiveIntegerField(default=0)
    period = models.CharField(max_length=20)
    season = models.CharField(max_length=10)
    unit_of_measure = models.CharField(max_length=3, choices=UNIT_CHOICES, default='PCS')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending_approval', db_index=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='created_items')
    approved_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_items')
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.product_code

    class Meta:
        db_table = 'items'
        ordering = ['-created_at']


class ItemImage(models.Model):
    """Photos attached to an item"""
    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='images')
    image = models.ImageField(upload_to='items/%Y/%m/')
    alt_text = models.CharField(max_length=255, blank=True)
    is_primary = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'item_images'
        ordering = ['-is_primary', 'created_at']


class ItemArchive(models.Model):
    """Snapshot taken when an item is archived"""
    item = models.OneToOneField(Item, on_delete=models.CASCADE, related_name='archive')
    reason = models.TextField()
    archived_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='archived_items')
    archived_at = models.DateTimeField(auto_now_add=True)
    stock_snapshot = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'item_archives'


class ItemRequest(models.Model):
    """Intake approval request raised when an item is registered"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='requests')
    requested_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='item_requests')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    notes = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)
    processed_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='processed_item_requests')
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Request {self.id} ({self.item_id})"

    class Meta:
        db_table = 'item_requests'
        ordering = ['-created_at']
