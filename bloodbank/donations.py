# bloodbank/donations.py
import logging

from django.db import transaction
from django.utils import timezone

from . import blood_types, rules, signals
from .exceptions import (
    ConcurrentLedgerUpdate, DonorIneligible, InvalidReason, NotAvailable,
    NotFound, NotPending, ScreeningFailed,
)
from .ledger import validate_quantity
from .locking import run_with_retry
from .models import Donation, DonationStatus, DonorProfile

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('blood_type', 'quantity', 'donation_date', 'location', 'address', 'notes')


class DonationLifecycle:
    """
    pending -> approved | rejected; approved -> collected | expired.

    Approval feeds the donation into the blood type's ledger in the same
    transaction.
    """

    def __init__(self, ledgers):
        self.ledgers = ledgers

    # ----------------- Persistence helpers -----------------

    def get(self, donation_id):
        try:
            return Donation.objects.select_related('donor').get(pk=donation_id)
        except Donation.DoesNotExist:
            raise NotFound(f"Donation {donation_id} not found")

    def get_for_update(self, donation_id):
        try:
            return Donation.objects.select_for_update().get(pk=donation_id)
        except Donation.DoesNotExist:
            raise NotFound(f"Donation {donation_id} not found")

    def save(self, donation):
        if donation.expiry_date is None:
            donation.expiry_date = rules.compute_expiry_date(donation.donation_date)
        donation.save()
        return donation

    def _require_pending(self, donation, action):
        if donation.status != DonationStatus.PENDING:
            logger.warning("Refused to %s donation %s in status %s", action, donation.pk, donation.status)
            raise NotPending(f"Can only {action} pending donations (donation is {donation.status})")

    def _announce(self, donation):
        status = str(donation.status)
        transaction.on_commit(
            lambda: signals.donation_status_changed.send_robust(
                sender=self.__class__, donation=donation, status=status,
            )
        )

    # ----------------- Eligibility -----------------

    def check_eligibility(self, donor, today=None):
        profile = DonorProfile.objects.filter(user=donor).first()
        if profile is None:
            return rules.Eligibility(False, 'Donor profile is required to check eligibility')
        return profile.eligibility(today or timezone.localdate())

    # ----------------- Transitions -----------------

    def submit(self, donor, blood_type, donation_date, location, quantity=450, address=None, notes=''):
        blood_types.validate(blood_type)
        validate_quantity(quantity)
        eligibility = self.check_eligibility(donor)
        if not eligibility.eligible:
            logger.warning("Donor %s is not eligible: %s", donor.pk, eligibility.reason)
            raise DonorIneligible(eligibility.reason)

        donation = Donation(
            donor=donor,
            blood_type=blood_type,
            quantity=quantity,
            donation_date=donation_date,
            expiry_date=rules.compute_expiry_date(donation_date),
            location=location,
            address=address or {},
            notes=notes,
        )
        self.save(donation)
        logger.info("Donation %s submitted by donor %s (%s, %d)", donation.pk, donor.pk, blood_type, quantity)
        return donation

    def approve(self, donation_id, screening, approved_by=None, now=None):
        now = now or timezone.now()
        blood_type = self.get(donation_id).blood_type

        def attempt():
            with self.ledgers.locks.hold(blood_type), transaction.atomic():
                donation = self.get_for_update(donation_id)
                if donation.blood_type != blood_type:
                    raise ConcurrentLedgerUpdate(f"Donation {donation_id} changed blood type during approval")
                self._require_pending(donation, 'approve')
                failure = rules.screening_failure(screening)
                if failure:
                    logger.warning("Donation %s failed screening: %s", donation_id, failure)
                    raise ScreeningFailed(failure)

                donation.status = DonationStatus.APPROVED
                donation.is_available = True
                donation.approved_by = approved_by
                donation.approval_date = now
                donation.medical_screening = {
                    **screening,
                    'screened_by': approved_by.pk if approved_by else None,
                    'screening_date': now.isoformat(),
                }
                self.save(donation)

                DonorProfile.objects.filter(user_id=donation.donor_id).update(
                    last_donated=donation.donation_date.date()
                )
                self.ledgers.add_donation(blood_type, donation, donation.quantity, donation.expiry_date)
                logger.info("Donation %s approved (%s, %d)", donation.pk, blood_type, donation.quantity)
                self._announce(donation)
                return donation

        return run_with_retry(attempt)

    def reject(self, donation_id, reason, rejected_by=None, now=None):
        if not reason or not reason.strip():
            raise InvalidReason('Rejection reason is required')
        now = now or timezone.now()
        with transaction.atomic():
            donation = self.get_for_update(donation_id)
            self._require_pending(donation, 'reject')
            donation.status = DonationStatus.REJECTED
            donation.rejection_reason = reason.strip()
            donation.approved_by = rejected_by
            donation.approval_date = now
            self.save(donation)
            logger.info("Donation %s rejected: %s", donation.pk, donation.rejection_reason)
            self._announce(donation)
        return donation

    def mark_collected(self, donation):
        """Called by the fulfillment coordinator inside its transaction."""
        if not donation.is_available:
            raise NotAvailable(f"Donation {donation.pk} is not available")
        donation.status = DonationStatus.COLLECTED
        donation.is_available = False
        self.save(donation)
        self._announce(donation)
        return donation

    def update(self, donation_id, **changes):
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update donation fields: {', '.join(sorted(unknown))}")
        if 'blood_type' in changes:
            blood_types.validate(changes['blood_type'])
        if 'quantity' in changes:
            validate_quantity(changes['quantity'])
        with transaction.atomic():
            donation = self.get_for_update(donation_id)
            self._require_pending(donation, 'update')
            for field, value in changes.items():
                setattr(donation, field, value)
            self.save(donation)
        return donation

    def cancel(self, donation_id):
        with transaction.atomic():
            donation = self.get_for_update(donation_id)
            self._require_pending(donation, 'cancel')
            donation.delete()
        logger.info("Donation %s cancelled", donation_id)

    def expire_stale(self, now=None):
        """Expire approved donations past their expiry date; returns the count."""
        now = now or timezone.now()
        expired = 0
        for bt in blood_types.BloodType.values:

            def attempt(bt=bt):
                with self.ledgers.locks.hold(bt), transaction.atomic():
                    stale = Donation.objects.select_for_update().filter(
                        blood_type=bt, status=DonationStatus.APPROVED, is_available=True, expiry_date__lt=now,
                    )
                    count = stale.update(status=DonationStatus.EXPIRED, is_available=False)
                    self.ledgers.expire_stale_donations(bt, now)
                    return count

            expired += run_with_retry(attempt)
        if expired:
            logger.info("Expired %d stale donations", expired)
        return expired
