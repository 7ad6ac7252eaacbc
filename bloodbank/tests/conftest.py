from datetime import date, timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from bloodbank.models import Donation, DonorProfile, InventoryLedger, Role, User
from bloodbank.services import build_services

from .utils import HEALTHY_SCREENING, HOSPITAL


@pytest.fixture
def now():
    return timezone.now()


@pytest.fixture
def services():
    return build_services()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        username='admin', email='admin@example.com', password='secret123', role=Role.ADMIN, is_staff=True,
    )


@pytest.fixture
def donor(db):
    user = User.objects.create_user(
        username='donor', email='donor@example.com', password='secret123', role=Role.DONOR,
    )
    DonorProfile.objects.filter(user=user).update(
        date_of_birth=date(1990, 1, 15), weight_kg=70, blood_type='O-',
    )
    return user


@pytest.fixture
def recipient(db):
    return User.objects.create_user(
        username='recipient', email='recipient@example.com', password='secret123', role=Role.RECIPIENT,
    )


@pytest.fixture
def stock(services, now):
    """Seed a ledger with loose units that are not tied to a donation."""
    def seed(blood_type, quantity, expires_in=timedelta(days=30)):
        services.ledgers.add_donation(blood_type, None, quantity, now + expires_in)
        return InventoryLedger.objects.get(blood_type=blood_type)
    return seed


@pytest.fixture
def approved_donation(services, donor, admin_user, now):
    """Create a pending donation and push it through approval."""
    def make(blood_type='O-', quantity=450, donation_date=None):
        donation_date = donation_date or now - timedelta(days=1)
        donation = Donation.objects.create(
            donor=donor,
            blood_type=blood_type,
            quantity=quantity,
            donation_date=donation_date,
            expiry_date=donation_date + timedelta(days=35),
            location='Central donation centre',
        )
        return services.donations.approve(donation.pk, HEALTHY_SCREENING, approved_by=admin_user, now=now)
    return make


@pytest.fixture
def blood_request(services, recipient, now):
    def make(blood_type='AB+', quantity=2, urgency='high', required_by=None, approve=False, approved_by=None):
        request = services.requests.submit(
            recipient=recipient,
            blood_type=blood_type,
            quantity=quantity,
            urgency=urgency,
            required_by=required_by or now + timedelta(days=5),
            reason='Scheduled surgery needs transfusion support',
            hospital=HOSPITAL,
            now=now,
        )
        if approve:
            request = services.requests.approve(request.pk, approved_by=approved_by, now=now)
        return request
    return make


@pytest.fixture
def api_client():
    return APIClient()

