# bloodbank/models.py
from django.db import models
from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator, MaxValueValidator, MinLengthValidator
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django.conf import settings

from . import rules
from .blood_types import BLOOD_GROUPS


class Role(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    DONOR = 'donor', 'Donor'
    RECIPIENT = 'recipient', 'Recipient'


class User(AbstractUser):
    """Donors, recipients and blood bank staff. ``role`` gates the admin-only API actions."""
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.DONOR)
    email = models.EmailField(_('email address'), unique=True)

    def __str__(self):
        return self.username


class DonorProfile(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='donor_profile')
    phone = models.CharField(max_length=20, blank=True)
    blood_type = models.CharField(max_length=3, choices=BLOOD_GROUPS, blank=True, null=True)
    city = models.CharField(max_length=120, blank=True)
    date_of_birth = models.DateField(blank=True, null=True)
    weight_kg = models.DecimalField(max_digits=5, decimal_places=1, blank=True, null=True)
    last_donated = models.DateField(blank=True, null=True)

    def __str__(self):
        bt = self.blood_type or "N/A"
        name = self.user.get_full_name() or self.user.username
        return f"{name} ({bt})"

    def eligibility(self, today=None):
        today = today or timezone.localdate()
        weight = float(self.weight_kg) if self.weight_kg is not None else None
        return rules.check_donor_eligibility(self.date_of_birth, weight, self.last_donated, today)


# ----------------- Inventory ledger -----------------

class StockStatus(models.TextChoices):
    NORMAL = 'normal', 'Normal'
    LOW = 'low', 'Low'
    CRITICAL = 'critical', 'Critical'
    HIGH = 'high', 'High'


class InventoryLedger(models.Model):
    """
    Stock accounting for one blood type. total_units is always recomputed from
    the other three buckets; mutations go through bloodbank.ledger.
    """
    blood_type = models.CharField(max_length=3, choices=BLOOD_GROUPS, unique=True)
    available_units = models.PositiveIntegerField(default=0)
    reserved_units = models.PositiveIntegerField(default=0)
    expired_units = models.PositiveIntegerField(default=0)
    total_units = models.PositiveIntegerField(default=0)
    min_threshold = models.PositiveIntegerField(default=10, validators=[MinValueValidator(1)])
    max_capacity = models.PositiveIntegerField(default=100, validators=[MinValueValidator(10)])

    total_donations_received = models.PositiveIntegerField(default=0)
    total_units_dispensed = models.PositiveIntegerField(default=0)
    total_units_expired = models.PositiveIntegerField(default=0)
    average_shelf_life_days = models.PositiveIntegerField(default=35)

    version = models.PositiveIntegerField(default=0)
    last_updated = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['blood_type']

    def __str__(self):
        return f"{self.blood_type}: {self.available_units} available / {self.total_units} total"

    def recompute_total(self):
        self.total_units = self.available_units + self.reserved_units + self.expired_units
        return self.total_units

    def is_low_stock(self):
        return self.available_units <= self.min_threshold

    def is_critical_stock(self):
        return self.available_units <= self.min_threshold // 2

    def stock_status(self):
        return rules.stock_status(self.available_units, self.min_threshold, self.max_capacity)

    def stock_percentage(self):
        return rules.stock_percentage(self.available_units, self.max_capacity)

    @property
    def statistics(self):
        return {
            'total_donations_received': self.total_donations_received,
            'total_units_dispensed': self.total_units_dispensed,
            'total_units_expired': self.total_units_expired,
            'average_shelf_life_days': self.average_shelf_life_days,
        }


class DonationEntryStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    RESERVED = 'reserved', 'Reserved'
    USED = 'used', 'Used'
    EXPIRED = 'expired', 'Expired'


class LedgerDonationEntry(models.Model):
    ledger = models.ForeignKey(InventoryLedger, on_delete=models.CASCADE, related_name='donation_entries')
    donation = models.ForeignKey('Donation', on_delete=models.SET_NULL, null=True, blank=True, related_name='ledger_entries')
    quantity = models.PositiveIntegerField()
    added_date = models.DateTimeField(default=timezone.now)
    expiry_date = models.DateTimeField()
    status = models.CharField(max_length=10, choices=DonationEntryStatus.choices, default=DonationEntryStatus.AVAILABLE)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.ledger.blood_type} donation {self.donation_id}: {self.quantity} ({self.status})"


class RequestEntryStatus(models.TextChoices):
    RESERVED = 'reserved', 'Reserved'
    FULFILLED = 'fulfilled', 'Fulfilled'
    CANCELLED = 'cancelled', 'Cancelled'


class LedgerRequestEntry(models.Model):
    ledger = models.ForeignKey(InventoryLedger, on_delete=models.CASCADE, related_name='request_entries')
    request = models.ForeignKey('BloodRequest', on_delete=models.SET_NULL, null=True, blank=True, related_name='ledger_entries')
    quantity = models.PositiveIntegerField()
    fulfilled_quantity = models.PositiveIntegerField(default=0)
    reserved_date = models.DateTimeField(default=timezone.now)
    status = models.CharField(max_length=10, choices=RequestEntryStatus.choices, default=RequestEntryStatus.RESERVED)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.ledger.blood_type} request {self.request_id}: {self.quantity} ({self.status})"

    @property
    def remaining_quantity(self):
        return self.quantity - self.fulfilled_quantity


class AlertKind(models.TextChoices):
    LOW_STOCK = 'low_stock', 'Low stock'
    EXPIRING_SOON = 'expiring_soon', 'Expiring soon'
    EXPIRED = 'expired', 'Expired'
    HIGH_DEMAND = 'high_demand', 'High demand'


class AlertSeverity(models.TextChoices):
    INFO = 'info', 'Info'
    WARNING = 'warning', 'Warning'
    CRITICAL = 'critical', 'Critical'


class InventoryAlert(models.Model):
    ledger = models.ForeignKey(InventoryLedger, on_delete=models.CASCADE, related_name='alerts')
    kind = models.CharField(max_length=20, choices=AlertKind.choices)
    severity = models.CharField(max_length=10, choices=AlertSeverity.choices, default=AlertSeverity.INFO)
    message = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"[{self.severity}] {self.message}"


# ----------------- Donations -----------------

class DonationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    COLLECTED = 'collected', 'Collected'
    EXPIRED = 'expired', 'Expired'


class Donation(models.Model):
    """
    One pledged/collected unit batch. expiry_date is set once from
    donation_date when the donation is submitted and never recomputed.
    """
    donor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='donations')
    blood_type = models.CharField(max_length=3, choices=BLOOD_GROUPS)
    quantity = models.PositiveIntegerField(
        default=450,
        validators=[MinValueValidator(350), MaxValueValidator(500)],
        help_text='Volume in ml.',
    )
    donation_date = models.DateTimeField()
    expiry_date = models.DateTimeField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=DonationStatus.choices, default=DonationStatus.PENDING)
    is_available = models.BooleanField(default=False)
    location = models.CharField(max_length=200)
    address = models.JSONField(default=dict, blank=True)
    medical_screening = models.JSONField(default=dict, blank=True)
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_donations')
    approval_date = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-donation_date']
        indexes = [
            models.Index(fields=['blood_type', 'status', 'is_available'], name='donation_type_status_idx'),
            models.Index(fields=['expiry_date'], name='donation_expiry_idx'),
        ]

    def __str__(self):
        return f"{self.donor.username} gave {self.quantity} ({self.blood_type}) - {self.status}"

    def is_expired(self, now=None):
        now = now or timezone.now()
        return self.expiry_date is not None and now > self.expiry_date


# ----------------- Requests -----------------

class Urgency(models.TextChoices):
    LOW = 'low', 'Low'
    MEDIUM = 'medium', 'Medium'
    HIGH = 'high', 'High'
    CRITICAL = 'critical', 'Critical'


class RequestStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    PARTIALLY_FULFILLED = 'partially_fulfilled', 'Partially fulfilled'
    FULFILLED = 'fulfilled', 'Fulfilled'
    REJECTED = 'rejected', 'Rejected'
    EXPIRED = 'expired', 'Expired'


OPEN_REQUEST_STATUSES = (
    RequestStatus.PENDING,
    RequestStatus.APPROVED,
    RequestStatus.PARTIALLY_FULFILLED,
)


class BloodRequest(models.Model):
    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='blood_requests')
    blood_type = models.CharField(max_length=3, choices=BLOOD_GROUPS)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1), MaxValueValidator(10)])
    urgency = models.CharField(max_length=10, choices=Urgency.choices, default=Urgency.MEDIUM)
    required_by = models.DateTimeField()
    reason = models.CharField(max_length=500, validators=[MinLengthValidator(10)])
    hospital_name = models.CharField(max_length=200)
    hospital_contact = models.CharField(max_length=20)
    hospital_address = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=RequestStatus.choices, default=RequestStatus.PENDING)
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_requests')
    approval_date = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True)
    fulfilled_quantity = models.PositiveIntegerField(default=0)
    priority = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1), MaxValueValidator(10)])
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-priority', 'created_at']
        indexes = [
            models.Index(fields=['blood_type', 'status', 'urgency'], name='request_type_status_idx'),
            models.Index(fields=['required_by', 'status'], name='request_due_status_idx'),
        ]

    def __str__(self):
        return f"{self.recipient.username} needs {self.quantity} units ({self.blood_type}) - {self.status}"

    @property
    def remaining_quantity(self):
        return max(0, self.quantity - self.fulfilled_quantity)

    def fulfillment_percentage(self):
        return int(round(self.fulfilled_quantity / self.quantity * 100))


class AssignedDonation(models.Model):
    request = models.ForeignKey(BloodRequest, on_delete=models.CASCADE, related_name='assigned_donations')
    donation = models.ForeignKey(Donation, on_delete=models.PROTECT, related_name='assignments')
    quantity = models.PositiveIntegerField()
    assigned_date = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['assigned_date', 'id']

    def __str__(self):
        return f"Donation {self.donation_id} -> request {self.request_id}: {self.quantity}"
