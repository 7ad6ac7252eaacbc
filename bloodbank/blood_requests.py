# bloodbank/blood_requests.py
import logging

from django.db import transaction
from django.utils import timezone

from . import blood_types, rules, signals
from .exceptions import (
    ConcurrentLedgerUpdate, InvalidQuantity, InvalidReason, InvalidRequiredDate, NotFound, NotPending,
)
from .locking import run_with_retry
from .models import BloodRequest, OPEN_REQUEST_STATUSES, RequestStatus, Urgency

logger = logging.getLogger(__name__)

MIN_REQUEST_UNITS = 1
MAX_REQUEST_UNITS = 10
MIN_REASON_LENGTH = 10
MAX_REASON_LENGTH = 500

EDITABLE_FIELDS = (
    'blood_type', 'quantity', 'urgency', 'required_by', 'reason',
    'hospital_name', 'hospital_contact', 'hospital_address', 'notes',
)


def validate_request_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) \
            or not MIN_REQUEST_UNITS <= quantity <= MAX_REQUEST_UNITS:
        raise InvalidQuantity(f"Quantity must be between {MIN_REQUEST_UNITS} and {MAX_REQUEST_UNITS} units")
    return quantity


def validate_reason(reason):
    reason = (reason or '').strip()
    if not MIN_REASON_LENGTH <= len(reason) <= MAX_REASON_LENGTH:
        raise InvalidReason(f"Reason must be between {MIN_REASON_LENGTH} and {MAX_REASON_LENGTH} characters")
    return reason


def validate_urgency(urgency):
    if urgency not in Urgency.values:
        raise ValueError(f"Unknown urgency: {urgency!r}")
    return urgency


class RequestLifecycle:
    """
    pending -> approved | rejected; approved -> partially_fulfilled -> fulfilled;
    any open state -> expired once required_by has passed.

    Every persist goes through save(), which recomputes the priority.
    """

    def __init__(self, ledgers):
        self.ledgers = ledgers

    # ----------------- Persistence helpers -----------------

    def get(self, request_id):
        try:
            return BloodRequest.objects.select_related('recipient').get(pk=request_id)
        except BloodRequest.DoesNotExist:
            raise NotFound(f"Blood request {request_id} not found")

    def get_for_update(self, request_id):
        try:
            return BloodRequest.objects.select_for_update().get(pk=request_id)
        except BloodRequest.DoesNotExist:
            raise NotFound(f"Blood request {request_id} not found")

    def save(self, request, now=None):
        # Recomputed on every save, even for edits unrelated to urgency or deadline.
        request.priority = rules.compute_priority(request.urgency, request.required_by, now or timezone.now())
        request.save()
        return request

    def _require_pending(self, request, action):
        if request.status != RequestStatus.PENDING:
            logger.warning("Refused to %s request %s in status %s", action, request.pk, request.status)
            raise NotPending(f"Can only {action} pending requests (request is {request.status})")

    def announce(self, request):
        status = str(request.status)
        transaction.on_commit(
            lambda: signals.request_status_changed.send_robust(
                sender=self.__class__, request=request, status=status,
            )
        )

    # ----------------- Transitions -----------------

    def submit(self, recipient, blood_type, quantity, urgency, required_by, reason, hospital, notes='', now=None):
        now = now or timezone.now()
        blood_types.validate(blood_type)
        validate_request_quantity(quantity)
        validate_urgency(urgency)
        if required_by <= now:
            raise InvalidRequiredDate('Required by date must be in the future')
        reason = validate_reason(reason)

        request = BloodRequest(
            recipient=recipient,
            blood_type=blood_type,
            quantity=quantity,
            urgency=urgency,
            required_by=required_by,
            reason=reason,
            hospital_name=hospital['name'],
            hospital_contact=hospital.get('contact_number', ''),
            hospital_address=hospital.get('address') or {},
            notes=notes,
        )
        self.save(request, now)
        logger.info(
            "Request %s submitted by %s: %d x %s (%s, priority %d)",
            request.pk, recipient.pk, quantity, blood_type, urgency, request.priority,
        )
        return request

    def approve(self, request_id, approved_by=None, now=None):
        now = now or timezone.now()
        with transaction.atomic():
            request = self.get_for_update(request_id)
            self._require_pending(request, 'approve')
            request.status = RequestStatus.APPROVED
            request.approved_by = approved_by
            request.approval_date = now
            self.save(request, now)
            logger.info("Request %s approved", request.pk)
            self.announce(request)
        return request

    def reject(self, request_id, reason, rejected_by=None, now=None):
        if not reason or not reason.strip():
            raise InvalidReason('Rejection reason is required')
        now = now or timezone.now()
        with transaction.atomic():
            request = self.get_for_update(request_id)
            self._require_pending(request, 'reject')
            request.status = RequestStatus.REJECTED
            request.approved_by = rejected_by
            request.approval_date = now
            request.rejection_reason = reason.strip()
            self.save(request, now)
            logger.info("Request %s rejected: %s", request.pk, request.rejection_reason)
            self.announce(request)
        return request

    def update(self, request_id, now=None, **changes):
        now = now or timezone.now()
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update request fields: {', '.join(sorted(unknown))}")
        if 'blood_type' in changes:
            blood_types.validate(changes['blood_type'])
        if 'quantity' in changes:
            validate_request_quantity(changes['quantity'])
        if 'urgency' in changes:
            validate_urgency(changes['urgency'])
        if 'required_by' in changes and changes['required_by'] <= now:
            raise InvalidRequiredDate('Required by date must be in the future')
        if 'reason' in changes:
            changes['reason'] = validate_reason(changes['reason'])
        with transaction.atomic():
            request = self.get_for_update(request_id)
            self._require_pending(request, 'update')
            for field, value in changes.items():
                setattr(request, field, value)
            self.save(request, now)
        return request

    def cancel(self, request_id):
        with transaction.atomic():
            request = self.get_for_update(request_id)
            self._require_pending(request, 'cancel')
            request.delete()
        logger.info("Request %s cancelled", request_id)

    def expire_overdue(self, now=None):
        """Expire open requests whose required_by has passed; returns the count."""
        now = now or timezone.now()
        overdue = list(
            BloodRequest.objects.filter(status__in=OPEN_REQUEST_STATUSES, required_by__lt=now)
            .values_list('pk', 'blood_type')
        )
        expired = 0
        for request_id, blood_type in overdue:
            if self._expire_one(request_id, blood_type, now):
                expired += 1
        if expired:
            logger.info("Expired %d overdue requests", expired)
        return expired

    def _expire_one(self, request_id, blood_type, now):
        def attempt():
            request = BloodRequest.objects.get(pk=request_id)
            held = self.ledgers.reserved_blood_types(request) | {blood_type}
            with self.ledgers.locks.hold(*held), transaction.atomic():
                request = self.get_for_update(request_id)
                if request.status not in OPEN_REQUEST_STATUSES or request.required_by >= now:
                    return False
                reserved = self.ledgers.reserved_blood_types(request)
                if not reserved <= held:
                    raise ConcurrentLedgerUpdate(f"Request {request_id} gained reservations while expiring")
                for bt in sorted(reserved):
                    self.ledgers.release_reservation(bt, request)
                request.status = RequestStatus.EXPIRED
                request.is_active = False
                self.save(request, now)
                self.announce(request)
                return True

        return run_with_retry(attempt)

    # ----------------- Reads -----------------

    def fulfillment_percentage(self, request):
        return request.fulfillment_percentage()

    def prioritized(self, queryset=None):
        queryset = BloodRequest.objects.all() if queryset is None else queryset
        return queryset.filter(status__in=OPEN_REQUEST_STATUSES).order_by('-priority', 'created_at', 'pk')
