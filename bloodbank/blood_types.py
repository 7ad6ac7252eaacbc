# bloodbank/blood_types.py
from django.db import models

from .exceptions import InvalidBloodType


class BloodType(models.TextChoices):
    A_POS = 'A+', 'A+'
    A_NEG = 'A-', 'A-'
    B_POS = 'B+', 'B+'
    B_NEG = 'B-', 'B-'
    AB_POS = 'AB+', 'AB+'
    AB_NEG = 'AB-', 'AB-'
    O_POS = 'O+', 'O+'
    O_NEG = 'O-', 'O-'


BLOOD_GROUPS = BloodType.choices

# Who can RECEIVE FROM whom (recipient -> donor types)
RECEIVE_COMPATIBILITY = {
    'A+': frozenset({'A+', 'A-', 'O+', 'O-'}),
    'A-': frozenset({'A-', 'O-'}),
    'B+': frozenset({'B+', 'B-', 'O+', 'O-'}),
    'B-': frozenset({'B-', 'O-'}),
    'AB+': frozenset(BloodType.values),  # universal recipient
    'AB-': frozenset({'A-', 'B-', 'AB-', 'O-'}),
    'O+': frozenset({'O+', 'O-'}),
    'O-': frozenset({'O-'}),
}

# Who can DONATE TO whom (donor -> recipient types)
DONATE_COMPATIBILITY = {
    donor: frozenset(
        recipient for recipient, donors in RECEIVE_COMPATIBILITY.items() if donor in donors
    )
    for donor in BloodType.values
}


def is_valid(value):
    return value in RECEIVE_COMPATIBILITY


def validate(value):
    if not is_valid(value):
        raise InvalidBloodType(f"Invalid blood type: {value!r}")
    return value


def compatible_donors_for(recipient_type):
    """Donor blood types a recipient of ``recipient_type`` can receive from."""
    return RECEIVE_COMPATIBILITY[recipient_type]


def compatible_recipients_for(donor_type):
    """Recipient blood types that can receive blood of ``donor_type``."""
    return DONATE_COMPATIBILITY[donor_type]
