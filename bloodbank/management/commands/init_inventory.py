from django.core.management.base import BaseCommand

from bloodbank.services import get_services


class Command(BaseCommand):
    help = "Create the inventory ledger for every blood type (idempotent)."

    def handle(self, *args, **options):
        created = get_services().ledgers.initialize_all()
        if created:
            self.stdout.write(self.style.SUCCESS(f"Created ledgers: {', '.join(created)}"))
        else:
            self.stdout.write("All blood type ledgers already exist.")
