"""
Report stored counters that disagree with the rows they count.

Usage: python manage.py check_counters

Exits with an error when any drift is found. It never repairs anything:
counters are only written by the counter hooks and the post cascade.
"""

from django.core.management.base import BaseCommand, CommandError

from blog.queries import find_counter_drift


class Command(BaseCommand):
    help = 'Check denormalized counters against their source rows'

    def handle(self, *args, **options):
        drift = find_counter_drift()

        if not drift:
            self.stdout.write(self.style.SUCCESS('All counters are consistent.'))
            return

        for entry in drift:
            self.stdout.write(
                f"{entry['model']} {entry['id']}: {entry['field']} "
                f"stored={entry['stored']} expected={entry['expected']}"
            )
        raise CommandError(f'{len(drift)} counter(s) out of sync')
