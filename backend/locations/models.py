from django.db import models


class Location(models.Model):
    """Physical storage area (room, warehouse floor) holding boxes"""
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'locations'
        ordering = ['name']


class Box(models.Model):
    """Numbered box inside a location; stock rows reference a box"""
    box_number = models.CharField(max_length=50)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='boxes')
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.location.name} / {self.box_number}"

    class Meta:
        db_table = 'boxes'
        ordering = ['location__name', 'box_number']
        unique_together = [['location', 'box_number']]
