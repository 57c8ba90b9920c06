from django.core.management.base import BaseCommand
from django.utils import timezone

from admission.realtime import notify
from admission.services import queue as queue_service


class Command(BaseCommand):
    help = "Re-publish the allowed snapshot to connected screens (e.g. after a restart)."

    def handle(self, *args, **options):
        allowed = queue_service.list_allowed()
        notify.allowed_update(allowed)
        self.stdout.write(self.style.SUCCESS(f"Published {len(allowed)} allowed patient(s) at {timezone.now()}"))
