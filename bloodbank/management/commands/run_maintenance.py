from django.core.management.base import BaseCommand

from bloodbank.services import get_services


class Command(BaseCommand):
    help = "Expire stale donations and overdue requests, then refresh inventory alerts."

    def handle(self, *args, **options):
        result = get_services().fulfillment.run_maintenance()
        self.stdout.write(self.style.SUCCESS(
            "Expired {expired_donations} donation(s) and {expired_requests} request(s); "
            "raised {alerts} alert(s).".format(**result)
        ))
