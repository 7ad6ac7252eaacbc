from datetime import timedelta

import pytest

from bloodbank.models import BloodRequest, Donation, DonorProfile, InventoryLedger, RequestStatus, User

from .utils import HEALTHY_SCREENING, HOSPITAL

pytestmark = pytest.mark.django_db


@pytest.fixture
def as_admin(api_client, admin_user):
    api_client.force_authenticate(admin_user)
    return api_client


@pytest.fixture
def request_payload(now):
    return {
        'blood_type': 'AB+',
        'quantity': 2,
        'urgency': 'critical',
        'required_by': (now + timedelta(days=1)).isoformat(),
        'reason': 'Emergency surgery after a road accident',
        'hospital': {'name': HOSPITAL['name'], 'contact_number': HOSPITAL['contact_number']},
    }


def test_anonymous_access_is_refused(api_client):
    assert api_client.get('/api/inventory/').status_code in (401, 403)


def test_register_donor_creates_profile(api_client):
    response = api_client.post('/api/users/', {
        'username': 'newdonor', 'email': 'new@example.com', 'password': 'longenough', 'role': 'donor',
    }, format='json')
    assert response.status_code == 201
    assert 'password' not in response.data
    assert DonorProfile.objects.filter(user__username='newdonor').exists()


def test_register_recipient_has_no_profile(api_client):
    response = api_client.post('/api/users/', {
        'username': 'patient', 'email': 'patient@example.com', 'password': 'longenough', 'role': 'recipient',
    }, format='json')
    assert response.status_code == 201
    assert not DonorProfile.objects.filter(user__username='patient').exists()


def test_donor_submits_donation(api_client, donor, now):
    api_client.force_authenticate(donor)
    response = api_client.post('/api/donations/', {
        'blood_type': 'O-', 'donation_date': now.isoformat(), 'location': 'Central donation centre',
    }, format='json')
    assert response.status_code == 201
    assert response.data['status'] == 'pending'
    assert response.data['quantity'] == 450
    assert response.data['expiry_date'] is not None
    assert response.data['donor'] == donor.pk


def test_donation_quantity_range_is_checked(api_client, donor, now):
    api_client.force_authenticate(donor)
    response = api_client.post('/api/donations/', {
        'blood_type': 'O-', 'donation_date': now.isoformat(), 'location': 'Central', 'quantity': 600,
    }, format='json')
    assert response.status_code == 400
    assert 'quantity' in response.data


def test_ineligible_donor_gets_reason(api_client, donor, now):
    DonorProfile.objects.filter(user=donor).update(weight_kg=41)
    api_client.force_authenticate(donor)
    response = api_client.post('/api/donations/', {
        'blood_type': 'O-', 'donation_date': now.isoformat(), 'location': 'Central',
    }, format='json')
    assert response.status_code == 422
    assert response.data == {'detail': 'Weight must be at least 45 kg', 'code': 'DonorIneligible'}


def test_donor_sees_only_own_donations(api_client, donor, approved_donation, recipient):
    approved_donation()
    api_client.force_authenticate(donor)
    assert len(api_client.get('/api/donations/').data) == 1
    api_client.force_authenticate(recipient)
    assert api_client.get('/api/donations/').data == []


def test_only_admins_approve_donations(api_client, donor, now):
    donation = Donation.objects.create(
        donor=donor, blood_type='O-', donation_date=now, expiry_date=now + timedelta(days=35), location='Central',
    )
    api_client.force_authenticate(donor)
    response = api_client.post(f'/api/donations/{donation.pk}/approve/', HEALTHY_SCREENING, format='json')
    assert response.status_code == 403


def test_admin_approves_donation(as_admin, donor, now):
    donation = Donation.objects.create(
        donor=donor, blood_type='O-', donation_date=now, expiry_date=now + timedelta(days=35), location='Central',
    )
    response = as_admin.post(f'/api/donations/{donation.pk}/approve/', HEALTHY_SCREENING, format='json')
    assert response.status_code == 200
    assert response.data['status'] == 'approved'
    assert response.data['is_available'] is True

    inventory = as_admin.get('/api/inventory/O-/')
    assert inventory.status_code == 200
    assert inventory.data['available_units'] == 450
    assert inventory.data['statistics']['total_donations_received'] == 1


def test_failed_screening_is_unprocessable(as_admin, donor, now):
    donation = Donation.objects.create(
        donor=donor, blood_type='O-', donation_date=now, expiry_date=now + timedelta(days=35), location='Central',
    )
    response = as_admin.post(
        f'/api/donations/{donation.pk}/approve/', {'hemoglobin': 10.2, 'weight': 70}, format='json',
    )
    assert response.status_code == 422
    assert response.data['code'] == 'ScreeningFailed'


def test_approving_twice_conflicts(as_admin, approved_donation):
    donation = approved_donation()
    response = as_admin.post(f'/api/donations/{donation.pk}/approve/', HEALTHY_SCREENING, format='json')
    assert response.status_code == 409
    assert response.data['code'] == 'NotPending'


def test_unknown_donation(as_admin):
    response = as_admin.post('/api/donations/999/reject/', {'reason': 'Not needed'}, format='json')
    assert response.status_code == 404


def test_donation_eligibility(api_client, donor):
    api_client.force_authenticate(donor)
    response = api_client.get('/api/donations/eligibility/')
    assert response.status_code == 200
    assert response.data == {'eligible': True, 'reason': 'Eligible for donation'}


def test_request_lifecycle_over_http(api_client, recipient, admin_user, approved_donation, request_payload):
    api_client.force_authenticate(recipient)
    created = api_client.post('/api/requests/', request_payload, format='json')
    assert created.status_code == 201
    assert created.data['status'] == 'pending'
    assert created.data['priority'] == 10
    request_id = created.data['id']

    api_client.force_authenticate(admin_user)
    approved = api_client.post(f'/api/requests/{request_id}/approve/')
    assert approved.status_code == 200
    assert approved.data['status'] == 'approved'

    donation = approved_donation(blood_type='O-', quantity=2)
    options = api_client.get(f'/api/requests/{request_id}/compatible-donations/')
    assert [d['id'] for d in options.data] == [donation.pk]

    assigned = api_client.post(
        f'/api/requests/{request_id}/assign-donation/', {'donation_id': donation.pk, 'quantity': 2}, format='json',
    )
    assert assigned.status_code == 200
    assert assigned.data['status'] == 'fulfilled'
    assert assigned.data['fulfillment_percentage'] == 100
    assert [a['quantity'] for a in assigned.data['assigned_donations']] == [2]


def test_incompatible_assignment_conflicts(as_admin, blood_request, approved_donation):
    request = blood_request(blood_type='A-', approve=True)
    donation = approved_donation(blood_type='B+')
    response = as_admin.post(
        f'/api/requests/{request.pk}/assign-donation/', {'donation_id': donation.pk, 'quantity': 1}, format='json',
    )
    assert response.status_code == 409
    assert response.data['code'] == 'IncompatibleBloodType'
    assert BloodRequest.objects.get(pk=request.pk).status == RequestStatus.APPROVED


def test_bad_hospital_contact(api_client, recipient, request_payload):
    request_payload['hospital']['contact_number'] = '12-34'
    api_client.force_authenticate(recipient)
    response = api_client.post('/api/requests/', request_payload, format='json')
    assert response.status_code == 400
    assert 'hospital' in response.data


def test_recipient_updates_pending_request(api_client, recipient, blood_request):
    request = blood_request(urgency='low')
    api_client.force_authenticate(recipient)
    response = api_client.patch(f'/api/requests/{request.pk}/', {'urgency': 'high'}, format='json')
    assert response.status_code == 200
    assert response.data['urgency'] == 'high'
    assert response.data['priority'] == 9


def test_recipient_sees_only_own_requests(api_client, recipient, blood_request):
    blood_request()
    other = User.objects.create_user(username='other', email='other@example.com', password='x' * 8, role='recipient')
    api_client.force_authenticate(other)
    assert api_client.get('/api/requests/').data == []
    api_client.force_authenticate(recipient)
    assert len(api_client.get('/api/requests/').data) == 1


def test_reserve_and_release(as_admin, stock, blood_request):
    stock('AB+', 10)
    request = blood_request(approve=True)

    reserved = as_admin.post(f'/api/requests/{request.pk}/reserve/', {'quantity': 2}, format='json')
    assert reserved.status_code == 201
    assert InventoryLedger.objects.get(blood_type='AB+').reserved_units == 2

    too_many = as_admin.post(f'/api/requests/{request.pk}/reserve/', {'quantity': 1}, format='json')
    assert too_many.status_code == 409

    released = as_admin.post(f'/api/requests/{request.pk}/release/')
    assert released.data == {'detail': 'Released', 'quantity': 2}


def test_public_inventory_hides_admin_fields(api_client, recipient, stock):
    stock('O+', 12)
    api_client.force_authenticate(recipient)
    response = api_client.get('/api/inventory/')
    assert response.status_code == 200
    row, = response.data
    assert row['blood_type'] == 'O+'
    assert row['stock_status'] == 'normal'
    assert 'min_threshold' not in row


def test_inventory_admin_actions(as_admin, stock):
    initialized = as_admin.post('/api/inventory/initialize/')
    assert len(initialized.data['created']) == 8

    stock('A+', 8)
    thresholds = as_admin.put('/api/inventory/A+/thresholds/', {'min_threshold': 5}, format='json')
    assert thresholds.status_code == 200
    assert thresholds.data['stock_status'] == 'normal'

    invalid = as_admin.put('/api/inventory/A+/thresholds/', {'min_threshold': 60, 'max_capacity': 50}, format='json')
    assert invalid.status_code == 400
    assert invalid.data['code'] == 'InvalidThreshold'

    summary = as_admin.get('/api/inventory/summary/')
    assert summary.data['total_available'] == 8

    alerts = as_admin.get('/api/inventory/alerts/')
    assert alerts.status_code == 200
    assert alerts.data['summary']['critical'] == 7

    maintenance = as_admin.post('/api/inventory/maintenance/')
    assert maintenance.status_code == 200
    assert maintenance.data['expired_requests'] == 0


def test_inventory_actions_need_admin(api_client, recipient):
    api_client.force_authenticate(recipient)
    assert api_client.get('/api/inventory/summary/').status_code == 403


def test_donor_completes_profile(api_client):
    user = User.objects.create_user(username='fresh', email='fresh@example.com', password='x' * 8, role='donor')
    api_client.force_authenticate(user)
    assert api_client.get('/api/donations/eligibility/').data['eligible'] is False

    response = api_client.patch('/api/users/profile/', {
        'date_of_birth': '1992-03-01', 'weight_kg': '68.5', 'blood_type': 'B+', 'last_donated': '2000-01-01',
    }, format='json')
    assert response.status_code == 200
    assert response.data['blood_type'] == 'B+'
    assert response.data['last_donated'] is None
    assert api_client.get('/api/donations/eligibility/').data['eligible'] is True


def test_recipient_has_no_donor_profile(api_client, recipient):
    api_client.force_authenticate(recipient)
    assert api_client.get('/api/users/profile/').status_code == 404
