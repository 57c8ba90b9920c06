from django.core.management.base import BaseCommand
from django.db import transaction

from admission.models import IdentityCounter
from admission.services.identity import bootstrap_counter, sequence_name


class Command(BaseCommand):
    help = "Create the patient identity counter ahead of the first check-in (idempotent)."

    def handle(self, *args, **options):
        name = sequence_name()
        with transaction.atomic():
            created = bootstrap_counter(name)
        counter = IdentityCounter.objects.get(name=name)
        if created:
            self.stdout.write(self.style.SUCCESS(f"created counter {name} at {counter.value}"))
        else:
            self.stdout.write(self.style.SUCCESS(f"counter {name} already at {counter.value}"))
