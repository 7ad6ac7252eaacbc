# bloodbank/services.py
from collections import namedtuple

from django.apps import apps

from .alerts import AlertEngine
from .blood_requests import RequestLifecycle
from .donations import DonationLifecycle
from .fulfillment import FulfillmentCoordinator
from .ledger import InventoryLedgerService
from .locking import LedgerLocks

Services = namedtuple('Services', ['ledgers', 'alerts', 'donations', 'requests', 'fulfillment'])


def build_services(locks=None):
    """Wire one object graph. All writers in a process must share its locks."""
    ledgers = InventoryLedgerService(locks or LedgerLocks())
    alerts = AlertEngine(ledgers)
    donations = DonationLifecycle(ledgers)
    requests = RequestLifecycle(ledgers)
    fulfillment = FulfillmentCoordinator(ledgers, donations, requests, alerts)
    return Services(ledgers, alerts, donations, requests, fulfillment)


def get_services():
    """The process-wide graph built by the app config."""
    return apps.get_app_config('bloodbank').services
