HEALTHY_SCREENING = {'hemoglobin': 13.8, 'weight': 72, 'blood_pressure': {'systolic': 120, 'diastolic': 80}}

HOSPITAL = {'name': 'City General', 'contact_number': '5551234567', 'address': {'city': 'Springfield'}}


def assert_balanced(ledger):
    ledger.refresh_from_db()
    assert ledger.total_units == ledger.available_units + ledger.reserved_units + ledger.expired_units


def assert_shelf_matches(ledger):
    """Entries still on the shelf back the available and reserved counters; expired entries back the expired one."""
    ledger.refresh_from_db()
    on_shelf = sum(e.quantity for e in ledger.donation_entries.filter(status='available'))
    expired = sum(e.quantity for e in ledger.donation_entries.filter(status='expired'))
    assert on_shelf == ledger.available_units + ledger.reserved_units
    assert expired == ledger.expired_units
