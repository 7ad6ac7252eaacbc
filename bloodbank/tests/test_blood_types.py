import pytest

from bloodbank import blood_types
from bloodbank.blood_types import BloodType, compatible_donors_for, compatible_recipients_for
from bloodbank.exceptions import InvalidBloodType


def test_ab_positive_receives_from_every_type():
    assert compatible_donors_for('AB+') == frozenset(BloodType.values)
    assert len(compatible_donors_for('AB+')) == 8


def test_o_negative_recipient_only_takes_o_negative():
    assert compatible_donors_for('O-') == frozenset({'O-'})


def test_o_negative_donates_to_every_type():
    assert compatible_recipients_for('O-') == frozenset(BloodType.values)


def test_ab_positive_donates_only_to_ab_positive():
    assert compatible_recipients_for('AB+') == frozenset({'AB+'})


@pytest.mark.parametrize('recipient, donors', [
    ('A-', {'A-', 'O-'}),
    ('B+', {'B+', 'B-', 'O+', 'O-'}),
    ('AB-', {'A-', 'B-', 'AB-', 'O-'}),
])
def test_receive_table(recipient, donors):
    assert compatible_donors_for(recipient) == frozenset(donors)


def test_donor_and_recipient_tables_agree():
    for donor in BloodType.values:
        for recipient in BloodType.values:
            assert (donor in compatible_donors_for(recipient)) == (recipient in compatible_recipients_for(donor))


@pytest.mark.parametrize('value', ['C+', 'o-', '', None, 'AB'])
def test_validate_rejects_unknown_types(value):
    assert not blood_types.is_valid(value)
    with pytest.raises(InvalidBloodType):
        blood_types.validate(value)


def test_validate_returns_value():
    assert blood_types.validate('B-') == 'B-'
