from django.contrib import admin
from .models import (
    User, DonorProfile, InventoryLedger, LedgerDonationEntry, LedgerRequestEntry,
    InventoryAlert, Donation, BloodRequest, AssignedDonation,
)
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'email', 'first_name', 'last_name', 'role', 'is_staff')
    list_filter = ('role', 'is_staff')
    fieldsets = BaseUserAdmin.fieldsets + (('Role', {'fields': ('role',)}),)


class LedgerDonationEntryInline(admin.TabularInline):
    model = LedgerDonationEntry
    extra = 0
    readonly_fields = ('donation', 'quantity', 'added_date', 'expiry_date', 'status')
    can_delete = False


class LedgerRequestEntryInline(admin.TabularInline):
    model = LedgerRequestEntry
    extra = 0
    readonly_fields = ('request', 'quantity', 'fulfilled_quantity', 'reserved_date', 'status')
    can_delete = False


@admin.register(InventoryLedger)
class InventoryLedgerAdmin(admin.ModelAdmin):
    # unit counters change only through the ledger service
    list_display = ('blood_type', 'available_units', 'reserved_units', 'expired_units', 'total_units', 'min_threshold', 'last_updated')
    readonly_fields = (
        'blood_type', 'available_units', 'reserved_units', 'expired_units', 'total_units',
        'total_donations_received', 'total_units_dispensed', 'total_units_expired', 'version', 'last_updated',
    )
    inlines = [LedgerDonationEntryInline, LedgerRequestEntryInline]


@admin.register(InventoryAlert)
class InventoryAlertAdmin(admin.ModelAdmin):
    list_display = ('ledger', 'kind', 'severity', 'is_active', 'created_at')
    list_filter = ('kind', 'severity', 'is_active')


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ('donor', 'blood_type', 'quantity', 'status', 'is_available', 'donation_date', 'expiry_date')
    list_filter = ('status', 'blood_type', 'is_available')
    search_fields = ('donor__username', 'donor__email', 'location')
    readonly_fields = ('expiry_date', 'status', 'is_available', 'approved_by', 'approval_date')


class AssignedDonationInline(admin.TabularInline):
    model = AssignedDonation
    extra = 0
    readonly_fields = ('donation', 'quantity', 'assigned_date')
    can_delete = False


@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'blood_type', 'quantity', 'fulfilled_quantity', 'urgency', 'priority', 'status', 'required_by')
    list_filter = ('status', 'blood_type', 'urgency')
    search_fields = ('recipient__username', 'hospital_name', 'reason')
    readonly_fields = ('status', 'fulfilled_quantity', 'priority', 'approved_by', 'approval_date')
    inlines = [AssignedDonationInline]


admin.site.register(DonorProfile)
