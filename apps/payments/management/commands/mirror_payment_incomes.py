# management/commands/mirror_payment_incomes.py

"""
Create missing "Course Fees" income records for recorded payments.

Mirroring is keyed on the transaction id, so transactions that already
have an income record are left alone.

USAGE EXAMPLES:
===============

python manage.py mirror_payment_incomes --tenant academy_one
"""

from django.core.management.base import BaseCommand
import logging

from finance.services import IncomeService
from payments.models import PaymentTransaction

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mirror confirmed payment transactions into the income ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant', type=str, required=True,
            help='Tenant whose transactions are mirrored'
        )

    def handle(self, *args, **options):
        tenant_id = options['tenant']
        transactions = PaymentTransaction.objects.for_tenant(tenant_id).filter(
            status='CONFIRMED'
        ).select_related('payment').order_by('paid_date')

        created_count = existing_count = failed_count = 0
        for payment_transaction in transactions:
            try:
                income, created = IncomeService.mirror_transaction(
                    payment_transaction,
                    student_name=payment_transaction.payment.student_name,
                    course_name=payment_transaction.payment.course_name,
                )
            except Exception as e:
                logger.error(
                    f"Could not mirror transaction {payment_transaction.invoice_number}: {e}",
                    exc_info=True
                )
                failed_count += 1
                continue

            if created:
                created_count += 1
            else:
                existing_count += 1

        self.stdout.write(self.style.SUCCESS(
            f'Income records created: {created_count}, already present: {existing_count}, '
            f'failed: {failed_count}'
        ))
