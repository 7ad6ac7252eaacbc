import logging
from datetime import timedelta

import pytest

from bloodbank import notifications
from bloodbank.models import AlertKind, Donation, DonorProfile

pytestmark = pytest.mark.django_db


def test_donor_user_gets_profile(donor, recipient):
    assert DonorProfile.objects.filter(user=donor).exists()
    assert not DonorProfile.objects.filter(user=recipient).exists()


def test_rejection_email_carries_reason(services, donor, now, mailoutbox, django_capture_on_commit_callbacks):
    donation = Donation.objects.create(
        donor=donor, blood_type='A+', donation_date=now, expiry_date=now + timedelta(days=35), location='Central',
    )
    with django_capture_on_commit_callbacks(execute=True):
        services.donations.reject(donation.pk, 'Low iron at check-in')
    message, = mailoutbox
    assert message.subject == 'Donation rejected'
    assert 'Low iron at check-in' in message.body


def test_request_approval_emails_recipient(services, blood_request, mailoutbox, django_capture_on_commit_callbacks):
    request = blood_request()
    with django_capture_on_commit_callbacks(execute=True):
        services.requests.approve(request.pk)
    message, = mailoutbox
    assert message.subject == 'Blood request approved'
    assert message.to == ['recipient@example.com']


def test_low_stock_alert_emails_admins(services, admin_user, stock, now, mailoutbox,
                                       django_capture_on_commit_callbacks):
    stock('O-', 3)
    with django_capture_on_commit_callbacks(execute=True):
        alert, = services.alerts.generate_alerts('O-', now)
    assert alert.kind == AlertKind.LOW_STOCK
    message, = mailoutbox
    assert message.subject == 'Low stock: O-'
    assert message.to == ['admin@example.com']
    assert message.body == alert.message


def test_failed_delivery_is_logged_not_raised(monkeypatch, caplog):
    def broken_send_mail(*args, **kwargs):
        raise ConnectionRefusedError('smtp down')

    monkeypatch.setattr(notifications, 'send_mail', broken_send_mail)
    monkeypatch.setattr(logging.getLogger('bloodbank'), 'propagate', True)
    assert notifications._deliver('Subject', 'Body', ['someone@example.com']) is False
    assert 'Failed to send notification' in caplog.text


def test_notifications_can_be_disabled(settings, mailoutbox):
    settings.BLOODBANK = {'NOTIFICATIONS_ENABLED': False}
    assert notifications._deliver('Subject', 'Body', ['someone@example.com']) is False
    assert mailoutbox == []
