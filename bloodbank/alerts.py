# bloodbank/alerts.py
import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from . import rules, signals
from .blood_types import BloodType
from .conf import get_setting
from .models import (
    AlertKind, AlertSeverity, DonationEntryStatus, InventoryAlert, StockStatus,
)

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {
    'critical': 3,
    'warning': 2,
    'info': 1,
}


class AlertEngine:
    """Derives low-stock and expiry alerts from a ledger's current state."""

    def __init__(self, ledgers):
        self.ledgers = ledgers

    def generate_alerts(self, blood_type, now=None):
        now = now or timezone.now()
        retention = timedelta(hours=get_setting('ALERT_RETENTION_HOURS'))
        warning_days = get_setting('EXPIRY_WARNING_DAYS')

        def operation(ledger):
            # aged alerts leave the active set but stay on record
            ledger.alerts.filter(is_active=True, created_at__lt=now - retention).update(is_active=False)
            emitted = []

            status = ledger.stock_status()
            if status in (StockStatus.LOW, StockStatus.CRITICAL):
                critical = status == StockStatus.CRITICAL
                emitted.append(self._emit(
                    ledger, AlertKind.LOW_STOCK,
                    AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                    f"{ledger.blood_type} blood stock is {'critically ' if critical else ''}low "
                    f"({ledger.available_units} units remaining)",
                    now,
                ))

            expiring = [
                entry for entry in ledger.donation_entries.filter(
                    status=DonationEntryStatus.AVAILABLE, expiry_date__gt=now,
                )
                if rules.days_until(entry.expiry_date, now) <= warning_days
            ]
            if expiring:
                total = sum(entry.quantity for entry in expiring)
                emitted.append(self._emit(
                    ledger, AlertKind.EXPIRING_SOON, AlertSeverity.WARNING,
                    f"{total} units of {ledger.blood_type} blood will expire within {warning_days} days",
                    now,
                ))
            return emitted

        alerts = self.ledgers.mutate(blood_type, operation)
        for alert in alerts:
            if alert.kind == AlertKind.LOW_STOCK:
                self._announce_low_stock(blood_type, alert)
        return alerts

    def _emit(self, ledger, kind, severity, message, now):
        ledger.alerts.filter(kind=kind, is_active=True).update(is_active=False)
        alert = InventoryAlert.objects.create(
            ledger=ledger, kind=kind, severity=severity, message=message, created_at=now,
        )
        logger.info("Alert for %s: %s", ledger.blood_type, message)
        return alert

    def _announce_low_stock(self, blood_type, alert):
        transaction.on_commit(
            lambda: signals.low_stock_alert.send_robust(sender=self.__class__, blood_type=blood_type, alert=alert)
        )

    def active_alerts(self, now=None):
        """
        Expire stale stock and regenerate alerts for every blood type, then
        return the active ones, most severe first, then newest first.
        """
        now = now or timezone.now()
        for bt in BloodType.values:
            self.ledgers.expire_stale_donations(bt, now)
            self.generate_alerts(bt, now)

        alerts = list(InventoryAlert.objects.filter(is_active=True).select_related('ledger'))
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        alerts.sort(key=lambda a: SEVERITY_ORDER[str(a.severity)], reverse=True)
        return {
            'alerts': alerts,
            'summary': {
                'total': len(alerts),
                'critical': sum(1 for a in alerts if a.severity == AlertSeverity.CRITICAL),
                'warning': sum(1 for a in alerts if a.severity == AlertSeverity.WARNING),
                'info': sum(1 for a in alerts if a.severity == AlertSeverity.INFO),
            },
        }
