# bloodbank/exceptions.py
"""
Errors raised by the inventory and fulfillment core.

Every error carries a ``category`` so callers can decide how to surface it
without matching on individual classes:

- ``input``: bad caller input, fix and retry.
- ``rule``: a domain rule said no (eligibility, screening).
- ``conflict``: the entity is in the wrong state; refresh and retry.
- ``not_found``: the referenced entity does not exist.
- ``fulfillment``: stock or compatibility prevents the operation.
- ``transient``: lock contention or a store hiccup; the only retryable kind.
"""


class BloodBankError(Exception):
    category = 'input'
    default_message = 'Blood bank operation failed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ----------------- Input validation -----------------

class InvalidBloodType(BloodBankError):
    default_message = 'Invalid blood type.'


class InvalidQuantity(BloodBankError):
    default_message = 'Invalid quantity.'


class InvalidRequiredDate(BloodBankError):
    default_message = 'Required by date must be in the future.'


class InvalidReason(BloodBankError):
    default_message = 'A reason is required.'


class InvalidThreshold(BloodBankError):
    default_message = 'Invalid inventory thresholds.'


# ----------------- Domain rules -----------------

class DonorIneligible(BloodBankError):
    category = 'rule'
    default_message = 'Donor is not eligible to donate.'


class ScreeningFailed(BloodBankError):
    category = 'rule'
    default_message = 'Medical screening does not meet donation thresholds.'


# ----------------- State machine -----------------

class NotFound(BloodBankError):
    category = 'not_found'
    default_message = 'Not found.'


class NotPending(BloodBankError):
    category = 'conflict'
    default_message = 'Only pending records can be changed.'


class NotAvailable(BloodBankError):
    category = 'conflict'
    default_message = 'Donation is no longer available.'


class RequestNotApproved(BloodBankError):
    category = 'conflict'
    default_message = 'Can only assign donations to approved requests.'


class ReservationNotFound(BloodBankError):
    category = 'conflict'
    default_message = 'Reservation not found.'


# ----------------- Fulfillment -----------------

class InsufficientStock(BloodBankError):
    category = 'fulfillment'
    default_message = 'Insufficient available units.'


class IncompatibleBloodType(BloodBankError):
    category = 'fulfillment'
    default_message = 'Blood types are not compatible.'


class DonationUnavailable(BloodBankError):
    category = 'fulfillment'
    default_message = 'Donation is not available for assignment.'


class OverFulfillment(BloodBankError):
    category = 'fulfillment'
    default_message = 'Cannot fulfill more than the reserved quantity.'


# ----------------- Transient -----------------

class ConcurrentLedgerUpdate(BloodBankError):
    category = 'transient'
    default_message = 'Inventory was modified concurrently.'
