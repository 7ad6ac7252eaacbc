# bloodbank/notifications.py
"""Email receivers for the domain signals. Delivery is best effort."""
import logging

from django.conf import settings
from django.core.mail import send_mail
from django.dispatch import receiver

from .conf import get_setting
from .models import Role, User
from .signals import donation_status_changed, low_stock_alert, request_status_changed

logger = logging.getLogger(__name__)


def _deliver(subject, message, recipients):
    recipients = [r for r in recipients if r]
    if not get_setting('NOTIFICATIONS_ENABLED') or not recipients:
        return False
    try:
        send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, recipients)
    except Exception:
        logger.exception("Failed to send notification %r to %s", subject, recipients)
        return False
    logger.info("Sent notification %r to %d recipient(s)", subject, len(recipients))
    return True


def _admin_emails():
    return list(User.objects.filter(role=Role.ADMIN, is_active=True).values_list('email', flat=True))


@receiver(donation_status_changed)
def notify_donor(sender, donation, status, **kwargs):
    name = donation.donor.get_full_name() or donation.donor.username
    if status == 'approved':
        body = (
            f"Hello {name}, your {donation.blood_type} donation at {donation.location} "
            f"has been approved. Thank you for donating!"
        )
    elif status == 'rejected':
        body = f"Hello {name}, your donation was not accepted: {donation.rejection_reason}"
    else:
        body = f"Hello {name}, your donation is now {status}."
    return _deliver(f"Donation {status}", body, [donation.donor.email])


@receiver(request_status_changed)
def notify_recipient(sender, request, status, **kwargs):
    name = request.recipient.get_full_name() or request.recipient.username
    body = (
        f"Hello {name}, your request for {request.quantity} unit(s) of {request.blood_type} "
        f"at {request.hospital_name} is now {status.replace('_', ' ')}."
    )
    if status == 'rejected' and request.rejection_reason:
        body += f" Reason: {request.rejection_reason}"
    return _deliver(f"Blood request {status.replace('_', ' ')}", body, [request.recipient.email])


@receiver(low_stock_alert)
def notify_admins_low_stock(sender, blood_type, alert, **kwargs):
    return _deliver(f"Low stock: {blood_type}", alert.message, _admin_emails())
