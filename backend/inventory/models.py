from django.db import models
from backend.catalog.models import Item
from backend.locations.models import Box


class ItemStock(models.Model):
    """Quantities of one item split by state, for one box (or no box)"""
    CONDITION_CHOICES = [
        ('excellent', 'Excellent'),
        ('good', 'Good'),
        ('fair', 'Fair'),
        ('poor', 'Poor'),
    ]

    COUNTER_FIELDS = ('pending', 'in_storage', 'on_borrow', 'in_clearance', 'seeded')

    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='stock_entries')
    # Null box: units not shelved (awaiting intake, on borrow, seeded)
    box = models.ForeignKey(Box, on_delete=models.PROTECT, related_name='stock_entries', null=True, blank=True)
    pending = models.PositiveIntegerField(default=0)
    in_storage = models.PositiveIntegerField(default=0)
    on_borrow = models.PositiveIntegerField(default=0)
    in_clearance = models.PositiveIntegerField(default=0)
    seeded = models.PositiveIntegerField(default=0)
    condition = models.CharField(max_length=20, choices=CONDITION_CHOICES, default='good')
    condition_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def total(self):
        return sum(getattr(self, field) for field in self.COUNTER_FIELDS)

    @property
    def is_empty(self):
        return self.total == 0

    def __str__(self):
        return f"{self.item_id} @ {self.box or 'unboxed'}"

    class Meta:
        db_table = 'item_stock'
        ordering = ['item_id', 'id']
        indexes = [
            models.Index(fields=['item', 'box'], name='idx_item_stock_item_box'),
        ]


class StockMovement(models.Model):
    """Audit log of quantity transitions between stock states"""
    MOVEMENT_TYPE_CHOICES = [
        ('intake', 'Intake'),
        ('borrow', 'Borrow'),
        ('complete', 'Borrow Returned'),
        ('seed', 'Seed'),
        ('revert_seed', 'Seed Reverted'),
        ('clearance', 'Clearance'),
        ('revert_clearance', 'Clearance Reverted'),
        ('adjustment', 'Adjustment'),
    ]

    STATE_CHOICES = [
        ('none', 'None'),
        ('pending', 'Pending'),
        ('storage', 'Storage'),
        ('borrowed', 'Borrowed'),
        ('clearance', 'Clearance'),
        ('seeded', 'Seeded'),
    ]

    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name='movements')
    stock = models.ForeignKey(ItemStock, on_delete=models.SET_NULL, null=True, blank=True, related_name='movements')
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_TYPE_CHOICES, db_index=True)
    quantity = models.PositiveIntegerField()
    from_state = models.CharField(max_length=20, choices=STATE_CHOICES)
    to_state = models.CharField(max_length=20, choices=STATE_CHOICES)
    from_box = models.ForeignKey(Box, on_delete=models.SET_NULL, null=True, blank=True, related_name='movements_out')
    to_box = models.ForeignKey(Box, on_delete=models.SET_NULL, null=True, blank=True, related_name='movements_in')
    reference_id = models.CharField(max_length=100, blank=True)
    reference_type = models.CharField(max_length=50, blank=True, db_index=True)
    performed_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='stock_movements')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.movement_type} {self.quantity} x {self.item_id} ({self.from_state} -> {self.to_state})"

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['reference_type', 'reference_id'], name='idx_movement_reference'),
        ]
