# bloodbank/ledger.py
import logging

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from . import blood_types, rules
from .exceptions import (
    ConcurrentLedgerUpdate, InsufficientStock, InvalidQuantity,
    InvalidThreshold, NotAvailable, OverFulfillment, ReservationNotFound,
)
from .locking import LedgerLocks, run_with_retry
from .models import (
    AlertKind, AlertSeverity, DonationEntryStatus, InventoryAlert,
    InventoryLedger, LedgerDonationEntry, LedgerRequestEntry, RequestEntryStatus,
)

logger = logging.getLogger(__name__)

COUNTER_FIELDS = (
    'available_units', 'reserved_units', 'expired_units', 'total_units',
    'total_donations_received', 'total_units_dispensed', 'total_units_expired',
    'min_threshold', 'max_capacity',
)


def validate_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity!r}")
    return quantity


class InventoryLedgerService:
    """
    Single source of truth for per-blood-type stock. Every mutation runs
    under the blood type's lock inside a transaction and saves the ledger
    with a version compare-and-swap.
    """

    def __init__(self, locks=None):
        self.locks = locks or LedgerLocks()

    # ----------------- Loading & saving -----------------

    def get_ledger(self, blood_type):
        blood_types.validate(blood_type)
        ledger, _ = InventoryLedger.objects.get_or_create(blood_type=blood_type)
        return ledger

    def initialize_all(self):
        created = []
        for bt in blood_types.BloodType.values:
            _, was_created = InventoryLedger.objects.get_or_create(blood_type=bt)
            if was_created:
                created.append(bt)
        if created:
            logger.info("Initialized inventory ledgers for %s", ", ".join(created))
        return created

    def _load_for_update(self, blood_type):
        InventoryLedger.objects.get_or_create(blood_type=blood_type)
        return InventoryLedger.objects.select_for_update().get(blood_type=blood_type)

    def _save(self, ledger):
        ledger.recompute_total()
        for field in COUNTER_FIELDS:
            if getattr(ledger, field) < 0:
                raise ValueError(f"{ledger.blood_type} ledger {field} would go negative")
        now = timezone.now()
        values = {field: getattr(ledger, field) for field in COUNTER_FIELDS}
        updated = InventoryLedger.objects.filter(pk=ledger.pk, version=ledger.version).update(
            version=ledger.version + 1, last_updated=now, **values
        )
        if updated != 1:
            raise ConcurrentLedgerUpdate(f"{ledger.blood_type} ledger changed since version {ledger.version}")
        ledger.version += 1
        ledger.last_updated = now

    def mutate(self, blood_type, operation):
        """
        Run ``operation(ledger)`` against a locked, freshly loaded ledger and
        persist it. Re-entrant: callers already holding the blood type's lock
        inside a transaction join that transaction.
        """
        blood_types.validate(blood_type)

        def attempt():
            with self.locks.hold(blood_type), transaction.atomic():
                ledger = self._load_for_update(blood_type)
                result = operation(ledger)
                self._save(ledger)
                return result

        return run_with_retry(attempt)

    # ----------------- Mutations -----------------

    def add_donation(self, blood_type, donation, quantity, expiry_date):
        validate_quantity(quantity)

        def operation(ledger):
            entry = LedgerDonationEntry.objects.create(
                ledger=ledger, donation=donation, quantity=quantity, expiry_date=expiry_date,
            )
            ledger.available_units += quantity
            ledger.total_units += quantity
            ledger.total_donations_received += 1
            if not ledger.is_low_stock():
                ledger.alerts.filter(kind=AlertKind.LOW_STOCK, is_active=True).update(is_active=False)
            logger.info("Added %d units to %s (available=%d)", quantity, blood_type, ledger.available_units)
            return entry

        return self.mutate(blood_type, operation)

    def reserve_units(self, blood_type, request, quantity):
        validate_quantity(quantity)

        def operation(ledger):
            if quantity > ledger.available_units:
                logger.warning(
                    "Cannot reserve %d units of %s for request %s: only %d available",
                    quantity, blood_type, request.pk, ledger.available_units,
                )
                raise InsufficientStock(
                    f"Insufficient available units of {blood_type}: "
                    f"requested {quantity}, available {ledger.available_units}"
                )
            entry = LedgerRequestEntry.objects.create(ledger=ledger, request=request, quantity=quantity)
            ledger.available_units -= quantity
            ledger.reserved_units += quantity
            logger.info("Reserved %d units of %s for request %s", quantity, blood_type, request.pk)
            return entry

        return self.mutate(blood_type, operation)

    def fulfill_reservation(self, blood_type, request, quantity):
        validate_quantity(quantity)

        def operation(ledger):
            entries = list(
                ledger.request_entries.filter(request=request, status=RequestEntryStatus.RESERVED).order_by('id')
            )
            if not entries:
                raise ReservationNotFound(f"No {blood_type} reservation for request {request.pk}")
            remaining = sum(e.remaining_quantity for e in entries)
            if quantity > remaining:
                raise OverFulfillment(
                    f"Cannot fulfill {quantity} units; only {remaining} reserved for request {request.pk}"
                )
            to_consume = quantity
            for entry in entries:
                if not to_consume:
                    break
                take = min(entry.remaining_quantity, to_consume)
                entry.fulfilled_quantity += take
                if entry.remaining_quantity == 0:
                    entry.status = RequestEntryStatus.FULFILLED
                entry.save(update_fields=['fulfilled_quantity', 'status'])
                to_consume -= take
            ledger.reserved_units -= quantity
            ledger.total_units_dispensed += quantity
            logger.info("Dispensed %d reserved units of %s to request %s", quantity, blood_type, request.pk)
            return quantity

        return self.mutate(blood_type, operation)

    def release_reservation(self, blood_type, request):
        """Cancel the request's open reservations; returns the units released."""

        def operation(ledger):
            released = 0
            for entry in ledger.request_entries.filter(request=request, status=RequestEntryStatus.RESERVED):
                released += entry.remaining_quantity
                entry.status = RequestEntryStatus.CANCELLED
                entry.save(update_fields=['status'])
            ledger.reserved_units -= released
            ledger.available_units += released
            if released:
                logger.info("Released %d reserved units of %s from request %s", released, blood_type, request.pk)
            return released

        return self.mutate(blood_type, operation)

    def retire_donation_entry(self, blood_type, donation, used_quantity):
        """
        Mark the donation's available entry used. Any unconsumed remainder is
        appended as a fresh available entry with the same expiry date.
        """
        validate_quantity(used_quantity)

        def operation(ledger):
            entry = (
                ledger.donation_entries
                .filter(donation=donation, status=DonationEntryStatus.AVAILABLE)
                .order_by('id')
                .first()
            )
            if entry is None:
                raise NotAvailable(f"Donation {donation.pk} has no available {blood_type} stock entry")
            entry.status = DonationEntryStatus.USED
            entry.save(update_fields=['status'])
            leftover = entry.quantity - used_quantity
            if leftover > 0:
                LedgerDonationEntry.objects.create(
                    ledger=ledger, donation=donation, quantity=leftover, expiry_date=entry.expiry_date,
                )
            return leftover

        return self.mutate(blood_type, operation)

    def expire_stale_donations(self, blood_type, now=None):
        """
        Move stale stock from available to expired, oldest expiry first.
        Reserved units are never expired: stale entries beyond the available
        count stay on the shelf until a later sweep, and an entry that only
        partly fits is split so the counters always match the entries.
        """
        now = now or timezone.now()

        def operation(ledger):
            stale = list(
                ledger.donation_entries
                .filter(status=DonationEntryStatus.AVAILABLE, expiry_date__lt=now)
                .order_by('expiry_date', 'id')
            )
            if not stale:
                return 0
            stale_units = sum(e.quantity for e in stale)
            budget = ledger.available_units
            expired = 0
            for entry in stale:
                if expired == budget:
                    break
                take = min(entry.quantity, budget - expired)
                if take < entry.quantity:
                    LedgerDonationEntry.objects.create(
                        ledger=ledger, donation=entry.donation, quantity=entry.quantity - take,
                        expiry_date=entry.expiry_date,
                    )
                    entry.quantity = take
                entry.status = DonationEntryStatus.EXPIRED
                entry.save(update_fields=['quantity', 'status'])
                expired += take
            held = stale_units - expired
            if held:
                logger.warning(
                    "%s: %d stale units are held by reservations and were left for a later sweep",
                    blood_type, held,
                )
            if not expired:
                return 0
            ledger.available_units -= expired
            ledger.expired_units += expired
            ledger.total_units_expired += expired
            ledger.alerts.filter(kind=AlertKind.EXPIRED, is_active=True).update(is_active=False)
            InventoryAlert.objects.create(
                ledger=ledger,
                kind=AlertKind.EXPIRED,
                severity=AlertSeverity.WARNING,
                message=f"{expired} units of {blood_type} blood have expired",
                created_at=now,
            )
            logger.info("Expired %d units of %s", expired, blood_type)
            return expired

        return self.mutate(blood_type, operation)

    def set_thresholds(self, blood_type, min_threshold=None, max_capacity=None):
        if min_threshold is not None and not 1 <= min_threshold <= 100:
            raise InvalidThreshold('Minimum threshold must be between 1 and 100')
        if max_capacity is not None and not 10 <= max_capacity <= 1000:
            raise InvalidThreshold('Maximum capacity must be between 10 and 1000')

        def operation(ledger):
            new_min = ledger.min_threshold if min_threshold is None else min_threshold
            new_max = ledger.max_capacity if max_capacity is None else max_capacity
            if new_min >= new_max:
                raise InvalidThreshold('Minimum threshold must be less than maximum capacity')
            ledger.min_threshold = new_min
            ledger.max_capacity = new_max
            return ledger

        return self.mutate(blood_type, operation)

    # ----------------- Reads -----------------

    def reserved_for(self, blood_type, request):
        """Units the request still holds in open reservations on this ledger."""
        totals = LedgerRequestEntry.objects.filter(
            ledger__blood_type=blood_type, request=request, status=RequestEntryStatus.RESERVED,
        ).aggregate(quantity=Sum('quantity'), fulfilled=Sum('fulfilled_quantity'))
        return (totals['quantity'] or 0) - (totals['fulfilled'] or 0)

    def reserved_blood_types(self, request):
        return set(
            LedgerRequestEntry.objects.filter(request=request, status=RequestEntryStatus.RESERVED)
            .values_list('ledger__blood_type', flat=True)
        )

    def summary(self):
        ledgers = list(InventoryLedger.objects.all())
        statuses = [inv.stock_status() for inv in ledgers]
        return {
            'total_blood_types': len(ledgers),
            'total_units': sum(inv.total_units for inv in ledgers),
            'total_available': sum(inv.available_units for inv in ledgers),
            'total_reserved': sum(inv.reserved_units for inv in ledgers),
            'total_expired': sum(inv.expired_units for inv in ledgers),
            'low_stock_types': sum(1 for inv in ledgers if inv.is_low_stock()),
            'critical_stock_types': sum(1 for inv in ledgers if inv.is_critical_stock()),
            'by_blood_type': {
                inv.blood_type: {
                    'available_units': inv.available_units,
                    'total_units': inv.total_units,
                    'stock_status': status,
                    'stock_percentage': inv.stock_percentage(),
                    'statistics': inv.statistics,
                }
                for inv, status in zip(ledgers, statuses)
            },
            'overall_health': rules.overall_health(statuses),
        }
