from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils.module_loading import import_string
from django_rq import get_scheduler


class Command(BaseCommand):
    help = "Replace the rq-scheduler cron jobs with the ones listed in settings.SCHEDULES"

    def handle(self, *args, **options):
        scheduler = get_scheduler("default")
        paths = {path for path, _ in settings.SCHEDULES}
        for job in scheduler.get_jobs():
            if job.func_name in paths:
                scheduler.cancel(job)
        for path, cron in settings.SCHEDULES:
            func = import_string(path)
            scheduler.cron(cron, func=func, repeat=None, queue_name="default")
            self.stdout.write(self.style.SUCCESS(f"Scheduled {path} with cron '{cron}'"))
