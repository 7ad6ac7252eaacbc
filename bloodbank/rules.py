# bloodbank/rules.py
"""
Pure derivations used by the lifecycle components before they persist.

Nothing here touches the database. Callers pass ``now``/``today`` explicitly
so the results are reproducible.
"""
import math
from collections import namedtuple
from datetime import timedelta

from .conf import get_setting

SECONDS_PER_DAY = 24 * 60 * 60

URGENCY_BASE_PRIORITY = {
    'critical': 10,
    'high': 8,
    'medium': 5,
    'low': 3,
}

# (max days until required, bonus)
DEADLINE_BONUSES = ((1, 3), (3, 2), (7, 1))

MAX_PRIORITY = 10

MIN_DONOR_AGE = 18
MAX_DONOR_AGE = 65
MIN_DONOR_WEIGHT_KG = 45
MIN_DAYS_BETWEEN_DONATIONS = 56
MIN_HEMOGLOBIN = 12.5

Eligibility = namedtuple('Eligibility', ['eligible', 'reason'])


def compute_expiry_date(donation_date, shelf_life_days=None):
    if shelf_life_days is None:
        shelf_life_days = get_setting('DONATION_SHELF_LIFE_DAYS')
    return donation_date + timedelta(days=shelf_life_days)


def days_until(moment, now):
    """Whole days from ``now`` to ``moment``, rounded up."""
    return math.ceil((moment - now).total_seconds() / SECONDS_PER_DAY)


def compute_priority(urgency, required_by, now):
    try:
        score = URGENCY_BASE_PRIORITY[str(urgency)]
    except KeyError:
        raise ValueError(f"Unknown urgency: {urgency!r}") from None
    remaining = days_until(required_by, now)
    for max_days, bonus in DEADLINE_BONUSES:
        if remaining <= max_days:
            score += bonus
            break
    return min(MAX_PRIORITY, score)


def stock_status(available_units, min_threshold, max_capacity):
    if available_units <= min_threshold // 2:
        return 'critical'
    if available_units <= min_threshold:
        return 'low'
    if available_units >= max_capacity * 0.8:
        return 'high'
    return 'normal'


def stock_percentage(available_units, max_capacity):
    # Not clamped: an overstocked ledger reports more than 100.
    return int(round(available_units / max_capacity * 100))


def overall_health(statuses):
    statuses = list(statuses)
    if not statuses:
        return {'percentage': 0, 'status': 'critical'}
    healthy = sum(1 for s in statuses if s in ('normal', 'high'))
    percentage = int(round(healthy / len(statuses) * 100))
    if healthy >= len(statuses) * 0.8:
        status = 'good'
    elif healthy >= len(statuses) * 0.6:
        status = 'moderate'
    else:
        status = 'critical'
    return {'percentage': percentage, 'status': status}


def age_on(date_of_birth, today):
    return int((today - date_of_birth).days // 365.25)


def check_donor_eligibility(date_of_birth, weight_kg, last_donated, today):
    """
    Age 18-65, weight at least 45 kg and 56 days since the last donation.
    Returns an ``Eligibility(eligible, reason)`` tuple.
    """
    if date_of_birth is None:
        return Eligibility(False, 'Date of birth is required to check eligibility')
    age = age_on(date_of_birth, today)
    if age < MIN_DONOR_AGE or age > MAX_DONOR_AGE:
        return Eligibility(False, f'Age must be between {MIN_DONOR_AGE}-{MAX_DONOR_AGE} years')
    if weight_kg is None or weight_kg < MIN_DONOR_WEIGHT_KG:
        return Eligibility(False, f'Weight must be at least {MIN_DONOR_WEIGHT_KG} kg')
    if last_donated is not None:
        days_since = (today - last_donated).days
        if days_since < MIN_DAYS_BETWEEN_DONATIONS:
            wait = MIN_DAYS_BETWEEN_DONATIONS - days_since
            return Eligibility(False, f'Must wait {wait} more days since last donation')
    return Eligibility(True, 'Eligible for donation')


def screening_failure(screening):
    """Reason the screening blocks approval, or None when it passes."""
    hemoglobin = screening.get('hemoglobin')
    weight = screening.get('weight')
    if hemoglobin is None or float(hemoglobin) < MIN_HEMOGLOBIN:
        return f'Hemoglobin level must be at least {MIN_HEMOGLOBIN} g/dL'
    if weight is None or float(weight) < MIN_DONOR_WEIGHT_KG:
        return f'Weight must be at least {MIN_DONOR_WEIGHT_KG} kg'
    return None
