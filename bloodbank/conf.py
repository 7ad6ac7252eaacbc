# bloodbank/conf.py
from django.conf import settings

DEFAULTS = {
    'DONATION_SHELF_LIFE_DAYS': 35,
    'ALERT_RETENTION_HOURS': 24,
    'EXPIRY_WARNING_DAYS': 7,
    'RETRY_ATTEMPTS': 3,
    'RETRY_BACKOFF_SECONDS': 0.05,
    'NOTIFICATIONS_ENABLED': True,
}


def get_setting(name):
    """Read a tunable from ``settings.BLOODBANK``, falling back to DEFAULTS."""
    overrides = getattr(settings, 'BLOODBANK', {})
    return overrides.get(name, DEFAULTS[name])
