"""
Django management command to check stock rows against the catalog and
list recent stock movements
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Q
from backend.catalog.models import Item
from backend.inventory import services
from backend.inventory.models import ItemStock, StockMovement


class Command(BaseCommand):
    help = 'Check stock counters for pending items and empty stock rows'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product-code',
            help='Check specific product code only',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Resync pending counters and delete empty stock rows',
        )
        parser.add_argument(
            '--movement-limit',
            type=int,
            default=20,
            help='Number of recent stock movements to show (default: 20)',
        )

    def handle(self, *args, **options):
        product_code = options.get('product_code')
        fix = options.get('fix', False)
        movement_limit = options.get('movement_limit', 20)

        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS("PENDING INTAKE vs TOTAL STOCK"))
        self.stdout.write("=" * 80)

        items = Item.objects.filter(status='pending_approval').order_by('product_code')
        if product_code:
            items = items.filter(product_code=product_code.upper())

        mismatches = []
        for item in items:
            totals = services.item_stock_totals(item)
            # Pending units moved to clearance are not restored
            expected = services.expected_pending(item)
            if totals['pending'] != expected:
                mismatches.append(item)
                self.stdout.write(self.style.WARNING(
                    f"{item.product_code}: total stock {item.total_stock}, "
                    f"expected pending {expected}, pending {totals['pending']}"
                ))

        if not mismatches:
            self.stdout.write(self.style.SUCCESS("No pending mismatches found"))
        elif fix:
            for item in mismatches:
                with transaction.atomic():
                    services.resync_pending(item, item.total_stock, None)
            self.stdout.write(self.style.SUCCESS(f"Resynced {len(mismatches)} pending item(s)"))

        self.stdout.write("")
        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS("EMPTY STOCK ROWS"))
        self.stdout.write("=" * 80)

        empty_rows = ItemStock.objects.filter(
            ~Q(pending__gt=0) & ~Q(in_storage__gt=0) & ~Q(on_borrow__gt=0)
            & ~Q(in_clearance__gt=0) & ~Q(seeded__gt=0)
        )
        if product_code:
            empty_rows = empty_rows.filter(item_id=product_code.upper())

        empty_count = empty_rows.count()
        self.stdout.write(f"Empty rows: {empty_count}")
        if empty_count and fix:
            empty_rows.delete()
            self.stdout.write(self.style.SUCCESS(f"Deleted {empty_count} empty row(s)"))

        self.stdout.write("")
        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS(f"RECENT STOCK MOVEMENTS (last {movement_limit})"))
        self.stdout.write("=" * 80)

        movements = StockMovement.objects.select_related('performed_by')
        if product_code:
            movements = movements.filter(item_id=product_code.upper())

        recent = list(movements[:movement_limit])
        if not recent:
            self.stdout.write("  No stock movements found.")
        for movement in recent:
            who = movement.performed_by.username if movement.performed_by else 'system'
            self.stdout.write(
                f"[{movement.created_at.strftime('%Y-%m-%d %H:%M:%S')}] {movement.movement_type} "
                f"{movement.quantity} x {movement.item_id} ({movement.from_state} -> {movement.to_state}) by {who}"
            )
