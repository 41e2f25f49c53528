# management/commands/backfill_ledger_tenants.py

"""
Assign a tenant to legacy payment rows created before tenant isolation.

Ledgers without a tenant get the given tenant; transactions without a
tenant take their ledger's tenant. Re-running the command changes nothing.

USAGE EXAMPLES:
===============

# 1. Preview the rows that would change
python manage.py backfill_ledger_tenants --tenant academy_one --dry-run

# 2. Apply
python manage.py backfill_ledger_tenants --tenant academy_one
"""

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.db.models import F
import logging

from payments.models import Payment, PaymentTransaction

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Assign a tenant to payment ledgers and transactions that have none'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant', type=str, required=True,
            help='Tenant id given to legacy ledgers'
        )
        parser.add_argument(
            '--dry-run', action='store_true',
            help='Report the changes without writing them'
        )

    def handle(self, *args, **options):
        tenant_id = options['tenant'].strip()
        if not tenant_id:
            raise CommandError('--tenant must not be empty')
        dry_run = options['dry_run']

        legacy_ledgers = list(Payment.objects.without_tenant().order_by('created_at'))
        taken_students = set(
            Payment.objects.for_tenant(tenant_id).values_list('student_id', flat=True)
        )

        assigned = set()
        ledgers_updated = ledgers_skipped = 0
        with transaction.atomic():
            for ledger in legacy_ledgers:
                if ledger.student_id in taken_students:
                    self.stdout.write(self.style.WARNING(
                        f'  Skipped ledger {ledger.pk}: tenant {tenant_id} already has a ledger '
                        f'for student {ledger.student_id}'
                    ))
                    ledgers_skipped += 1
                    continue

                taken_students.add(ledger.student_id)
                assigned.add(ledger.pk)
                ledgers_updated += 1
                if not dry_run:
                    Payment.objects.filter(pk=ledger.pk).update(
                        tenant_id=tenant_id,
                        version=F('version') + 1,
                    )

            transactions_updated = 0
            legacy_transactions = PaymentTransaction.objects.without_tenant().select_related('payment')
            for payment_transaction in legacy_transactions:
                ledger_tenant = payment_transaction.payment.tenant_id
                if not ledger_tenant and payment_transaction.payment_id in assigned:
                    ledger_tenant = tenant_id
                if not ledger_tenant:
                    continue

                transactions_updated += 1
                if not dry_run:
                    PaymentTransaction.objects.filter(pk=payment_transaction.pk).update(
                        tenant_id=ledger_tenant
                    )

        prefix = 'Would update' if dry_run else 'Updated'
        self.stdout.write(self.style.SUCCESS(
            f'{prefix} {ledgers_updated} ledger(s) and {transactions_updated} transaction(s); '
            f'skipped {ledgers_skipped} ledger(s)'
        ))
        if not dry_run:
            logger.info(
                f"Backfilled tenant {tenant_id}: {ledgers_updated} ledgers, "
                f"{transactions_updated} transactions"
            )
