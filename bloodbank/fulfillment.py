# bloodbank/fulfillment.py
import logging

from django.db import transaction
from django.utils import timezone

from .blood_types import BloodType, compatible_donors_for
from .exceptions import (
    ConcurrentLedgerUpdate, DonationUnavailable, IncompatibleBloodType,
    OverFulfillment, RequestNotApproved,
)
from .ledger import validate_quantity
from .locking import run_with_retry
from .models import AssignedDonation, Donation, DonationStatus, RequestStatus

logger = logging.getLogger(__name__)

ASSIGNABLE_STATUSES = (RequestStatus.APPROVED, RequestStatus.PARTIALLY_FULFILLED)


class FulfillmentCoordinator:
    """
    Keeps a request, the donations assigned to it and the inventory ledgers
    consistent. Each operation is a single transaction: it either applies
    completely or not at all.
    """

    def __init__(self, ledgers, donations, requests, alerts):
        self.ledgers = ledgers
        self.donations = donations
        self.requests = requests
        self.alerts = alerts

    def assign_donation(self, request_id, donation_id, quantity, now=None):
        validate_quantity(quantity)
        now = now or timezone.now()
        request_type = self.requests.get(request_id).blood_type
        donation_type = self.donations.get(donation_id).blood_type

        def attempt():
            with self.ledgers.locks.hold(request_type, donation_type), transaction.atomic():
                request = self.requests.get_for_update(request_id)
                donation = self.donations.get_for_update(donation_id)
                if (request.blood_type, donation.blood_type) != (request_type, donation_type):
                    raise ConcurrentLedgerUpdate('Blood type changed during assignment')

                if request.status not in ASSIGNABLE_STATUSES:
                    raise RequestNotApproved(
                        f"Can only assign donations to approved requests (request is {request.status})"
                    )
                if donation.status != DonationStatus.APPROVED or not donation.is_available:
                    raise DonationUnavailable(f"Donation {donation.pk} is not available for assignment")
                if donation.is_expired(now):
                    raise DonationUnavailable(f"Donation {donation.pk} expired on {donation.expiry_date:%Y-%m-%d}")
                if donation.blood_type not in compatible_donors_for(request.blood_type):
                    logger.warning(
                        "Rejected %s donation %s for %s request %s: incompatible",
                        donation.blood_type, donation.pk, request.blood_type, request.pk,
                    )
                    raise IncompatibleBloodType(
                        f"{donation.blood_type} blood cannot be given to a {request.blood_type} recipient"
                    )

                assign_qty = min(quantity, request.remaining_quantity, donation.quantity)

                AssignedDonation.objects.create(
                    request=request, donation=donation, quantity=assign_qty, assigned_date=now,
                )
                request.fulfilled_quantity += assign_qty
                if request.fulfilled_quantity >= request.quantity:
                    request.status = RequestStatus.FULFILLED
                else:
                    request.status = RequestStatus.PARTIALLY_FULFILLED
                self.requests.save(request, now)

                self.donations.mark_collected(donation)

                held = self.ledgers.reserved_for(donation_type, request)
                if held < assign_qty:
                    self.ledgers.reserve_units(donation_type, request, assign_qty - held)
                self.ledgers.fulfill_reservation(donation_type, request, assign_qty)
                self.ledgers.retire_donation_entry(donation_type, donation, assign_qty)

                if request.status == RequestStatus.FULFILLED:
                    for bt in sorted(self.ledgers.reserved_blood_types(request)):
                        self.ledgers.release_reservation(bt, request)

                logger.info(
                    "Assigned %d units from donation %s to request %s (%d/%d, %s)",
                    assign_qty, donation.pk, request.pk, request.fulfilled_quantity,
                    request.quantity, request.status,
                )
                self.requests.announce(request)
                return request

        return run_with_retry(attempt)

    def reserve_stock(self, request_id, quantity):
        """Hold units of the request's own blood type ahead of assignment."""
        validate_quantity(quantity)
        blood_type = self.requests.get(request_id).blood_type

        def attempt():
            with self.ledgers.locks.hold(blood_type), transaction.atomic():
                request = self.requests.get_for_update(request_id)
                if request.status not in ASSIGNABLE_STATUSES:
                    raise RequestNotApproved(f"Can only reserve stock for approved requests (request is {request.status})")
                held = sum(self.ledgers.reserved_for(bt, request) for bt in self.ledgers.reserved_blood_types(request))
                if held + quantity > request.remaining_quantity:
                    raise OverFulfillment(
                        f"Request {request.pk} needs {request.remaining_quantity} more units and already holds {held}"
                    )
                return self.ledgers.reserve_units(blood_type, request, quantity)

        return run_with_retry(attempt)

    def release_stock(self, request_id):
        """Release every open reservation the request holds; returns units released."""
        request = self.requests.get(request_id)
        held = self.ledgers.reserved_blood_types(request)

        def attempt():
            with self.ledgers.locks.hold(*held), transaction.atomic():
                return sum(self.ledgers.release_reservation(bt, request) for bt in sorted(held))

        return run_with_retry(attempt) if held else 0

    def compatible_donations(self, request_id, now=None):
        now = now or timezone.now()
        request = self.requests.get(request_id)
        return Donation.objects.filter(
            status=DonationStatus.APPROVED,
            is_available=True,
            blood_type__in=compatible_donors_for(request.blood_type),
            expiry_date__gt=now,
        ).order_by('expiry_date', 'pk')

    def run_maintenance(self, now=None):
        """Expire stale donations and overdue requests, then refresh alerts."""
        now = now or timezone.now()
        result = {
            'expired_donations': self.donations.expire_stale(now),
            'expired_requests': self.requests.expire_overdue(now),
            'alerts': 0,
        }
        for bt in BloodType.values:
            result['alerts'] += len(self.alerts.generate_alerts(bt, now))
        logger.info("Maintenance run: %s", result)
        return result
