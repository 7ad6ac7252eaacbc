from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytest

from bloodbank import rules

NOW = datetime(2024, 7, 1, 12, 0, tzinfo=dt_timezone.utc)


def test_expiry_is_thirty_five_days_after_donation():
    donated = datetime(2024, 7, 1, 9, 30, tzinfo=dt_timezone.utc)
    assert rules.compute_expiry_date(donated) == datetime(2024, 8, 5, 9, 30, tzinfo=dt_timezone.utc)


def test_expiry_shelf_life_override():
    donated = datetime(2024, 7, 1, tzinfo=dt_timezone.utc)
    assert rules.compute_expiry_date(donated, shelf_life_days=42).date() == date(2024, 8, 12)


@pytest.mark.parametrize('delta, expected', [
    (timedelta(hours=1), 1),
    (timedelta(hours=24), 1),
    (timedelta(hours=25), 2),
    (timedelta(days=7), 7),
    (timedelta(0), 0),
])
def test_days_until_rounds_up(delta, expected):
    assert rules.days_until(NOW + delta, NOW) == expected


def test_critical_priority_is_capped():
    assert rules.compute_priority('critical', NOW + timedelta(days=1), NOW) == 10
    assert rules.compute_priority('critical', NOW + timedelta(days=30), NOW) == 10


def test_unknown_urgency_has_no_priority():
    with pytest.raises(ValueError, match='Unknown urgency'):
        rules.compute_priority('urgent', NOW + timedelta(days=1), NOW)


@pytest.mark.parametrize('urgency, days, expected', [
    ('high', 1, 10),
    ('high', 5, 9),
    ('medium', 2, 7),
    ('medium', 30, 5),
    ('low', 3, 5),
    ('low', 7, 4),
    ('low', 8, 3),
])
def test_priority_deadline_bonus(urgency, days, expected):
    assert rules.compute_priority(urgency, NOW + timedelta(days=days), NOW) == expected


def test_priority_counts_partial_days_as_whole():
    # 1 day and 1 hour away rounds up to 2 days, which only earns the 3-day bonus
    assert rules.compute_priority('low', NOW + timedelta(days=1, hours=1), NOW) == 5


@pytest.mark.parametrize('available, expected', [
    (0, 'critical'),
    (5, 'critical'),
    (6, 'low'),
    (10, 'low'),
    (11, 'normal'),
    (79, 'normal'),
    (80, 'high'),
    (140, 'high'),
])
def test_stock_status_boundaries(available, expected):
    assert rules.stock_status(available, 10, 100) == expected


def test_stock_status_with_odd_threshold_floors_half():
    assert rules.stock_status(3, 7, 100) == 'critical'
    assert rules.stock_status(4, 7, 100) == 'low'


def test_stock_percentage_is_not_clamped():
    assert rules.stock_percentage(45, 100) == 45
    assert rules.stock_percentage(150, 100) == 150
    assert rules.stock_percentage(1, 3) == 33


def test_overall_health():
    assert rules.overall_health(['normal'] * 8) == {'percentage': 100, 'status': 'good'}
    assert rules.overall_health(['normal'] * 5 + ['low'] * 3) == {'percentage': 62, 'status': 'moderate'}
    assert rules.overall_health(['critical'] * 8)['status'] == 'critical'
    assert rules.overall_health([]) == {'percentage': 0, 'status': 'critical'}


TODAY = date(2024, 7, 1)


def test_eligible_donor():
    result = rules.check_donor_eligibility(date(1990, 1, 1), 70, None, TODAY)
    assert result.eligible
    assert result.reason == 'Eligible for donation'


@pytest.mark.parametrize('dob', [date(2010, 1, 1), date(1950, 1, 1)])
def test_age_outside_range(dob):
    result = rules.check_donor_eligibility(dob, 70, None, TODAY)
    assert not result.eligible
    assert result.reason == 'Age must be between 18-65 years'


def test_underweight_donor():
    result = rules.check_donor_eligibility(date(1990, 1, 1), 44.5, None, TODAY)
    assert result == rules.Eligibility(False, 'Weight must be at least 45 kg')


def test_missing_weight_is_ineligible():
    assert not rules.check_donor_eligibility(date(1990, 1, 1), None, None, TODAY).eligible


def test_recent_donor_must_wait():
    result = rules.check_donor_eligibility(date(1990, 1, 1), 70, TODAY - timedelta(days=30), TODAY)
    assert result == rules.Eligibility(False, 'Must wait 26 more days since last donation')


def test_donor_eligible_after_waiting_period():
    assert rules.check_donor_eligibility(date(1990, 1, 1), 70, TODAY - timedelta(days=56), TODAY).eligible


def test_missing_date_of_birth():
    result = rules.check_donor_eligibility(None, 70, None, TODAY)
    assert not result.eligible
    assert 'Date of birth' in result.reason


def test_screening():
    assert rules.screening_failure({'hemoglobin': 12.5, 'weight': 45}) is None
    assert 'Hemoglobin' in rules.screening_failure({'hemoglobin': 12.4, 'weight': 70})
    assert 'Weight' in rules.screening_failure({'hemoglobin': 14, 'weight': 44})
    assert 'Hemoglobin' in rules.screening_failure({'weight': 70})
