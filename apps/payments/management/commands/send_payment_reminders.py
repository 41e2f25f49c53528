# management/commands/send_payment_reminders.py

"""
Send due payment reminders.

USAGE EXAMPLES:
===============

# 1. Send every due reminder (run from cron, e.g. hourly)
python manage.py send_payment_reminders

# 2. Only one academy
python manage.py send_payment_reminders --tenant academy_one

# 3. Show what would be sent
python manage.py send_payment_reminders --dry-run
"""

from django.core.management.base import BaseCommand
from django.db import DatabaseError
from django.utils import timezone
import logging

from core.models import PaymentSettings
from payments.exceptions import StaleLedger
from payments.notifications import send_payment_reminder
from payments.reminders import find_due_reminders, record_reminder_sent

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Email payment reminders whose next reminder date has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant', type=str, default=None,
            help='Only process ledgers of this tenant'
        )
        parser.add_argument(
            '--limit', type=int, default=None,
            help='Maximum ledgers to process (default: PAYMENT_REMINDER_BATCH_SIZE)'
        )
        parser.add_argument(
            '--dry-run', action='store_true',
            help='List due reminders without sending them'
        )

    def handle(self, *args, **options):
        now = timezone.now()
        ledgers = list(find_due_reminders(now, tenant_id=options['tenant'], limit=options['limit']))

        if not ledgers:
            self.stdout.write('No reminders due.')
            return

        tenant_settings = {}
        sent = skipped = failed = 0

        for ledger in ledgers:
            if options['dry_run']:
                self.stdout.write(
                    f"  {ledger.tenant_id} {ledger.student_name}: due {ledger.next_reminder_date:%Y-%m-%d %H:%M}"
                )
                continue

            if ledger.tenant_id not in tenant_settings:
                tenant_settings[ledger.tenant_id] = PaymentSettings.get_for_tenant(ledger.tenant_id)
            payment_settings = tenant_settings[ledger.tenant_id]
            tz = payment_settings.get_timezone()

            try:
                delivered = send_payment_reminder(ledger, tz)
            except Exception as e:
                logger.error(f"Reminder email failed for ledger {ledger.pk}: {e}", exc_info=True)
                failed += 1
                continue

            try:
                record_reminder_sent(ledger, now, tz, payment_settings.reminder_hour, delivered=delivered)
            except StaleLedger:
                # A payment changed the ledger; its new schedule stands
                logger.warning(f"Ledger {ledger.pk} changed while sending its reminder")
            except DatabaseError as e:
                logger.error(f"Could not record reminder for ledger {ledger.pk}: {e}", exc_info=True)
                failed += 1
                continue

            if delivered:
                sent += 1
            else:
                skipped += 1

        if options['dry_run']:
            self.stdout.write(self.style.WARNING(f'Dry run: {len(ledgers)} reminder(s) due.'))
            return

        self.stdout.write(self.style.SUCCESS(
            f'Reminders sent: {sent}, skipped (no email): {skipped}, failed: {failed}'
        ))
