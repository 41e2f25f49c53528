# finance/services.py

"""
Income ledger operations.

Payments call ``IncomeService.mirror_transaction`` after a payment has been
committed. Mirroring is idempotent per payment transaction, so the
``mirror_payment_incomes`` command can safely re-run over old data.
"""

from decimal import Decimal
from django.db import transaction, IntegrityError
from django.core.exceptions import ValidationError
import logging

from core.utils import safe_decimal
from finance.models import IncomeRecord

logger = logging.getLogger(__name__)


class IncomeService:
    """Create income records, one per source payment at most"""

    REQUIRED_FIELDS = ('date', 'amount')

    @staticmethod
    def record_income(tenant_id, income_data):
        """
        Create an income record.

        Args:
            tenant_id (str): Academy the income belongs to
            income_data (dict):
                Required:
                    - date: datetime
                    - amount: Decimal (> 0)
                Optional:
                    - category (default "Course Fees")
                    - payment_mode, received_by, received_from, description
                    - source_transaction_id: makes the call idempotent

        Returns:
            tuple: (IncomeRecord, created)

        Raises:
            ValidationError: If required fields are missing or amount <= 0
        """
        if not tenant_id:
            raise ValidationError("tenant_id is required to record income")

        missing = [name for name in IncomeService.REQUIRED_FIELDS if not income_data.get(name)]
        if missing:
            raise ValidationError(f"Missing income fields: {', '.join(missing)}")

        amount = safe_decimal(income_data['amount'])
        if amount <= Decimal('0'):
            raise ValidationError(f"Invalid income amount: {income_data['amount']}")

        source_transaction_id = str(income_data.get('source_transaction_id') or '')
        if source_transaction_id:
            existing = IncomeRecord.objects.for_tenant(tenant_id).filter(
                source_transaction_id=source_transaction_id
            ).first()
            if existing:
                logger.debug(f"Income already mirrored for transaction {source_transaction_id}")
                return existing, False

        try:
            with transaction.atomic():
                income = IncomeRecord.objects.create_for_tenant(
                    tenant_id,
                    date=income_data['date'],
                    amount=amount,
                    income_category=income_data.get('category') or IncomeRecord.COURSE_FEES,
                    source_type=income_data.get('source_type') or 'Students',
                    payment_mode=income_data.get('payment_mode') or 'Cash',
                    received_by=income_data.get('received_by') or '',
                    received_from=income_data.get('received_from') or '',
                    description=income_data.get('description') or '',
                    source_transaction_id=source_transaction_id,
                )
        except IntegrityError:
            # A concurrent mirror of the same transaction won the insert
            if not source_transaction_id:
                raise
            income = IncomeRecord.objects.for_tenant(tenant_id).get(
                source_transaction_id=source_transaction_id
            )
            return income, False

        logger.info(f"Recorded income {income.pk} of {amount} for tenant {tenant_id}")
        return income, True

    @staticmethod
    def mirror_transaction(payment_transaction, student_name='', course_name=''):
        """
        Mirror a confirmed payment transaction as a "Course Fees" income.

        Returns:
            tuple: (IncomeRecord, created)
        """
        if course_name:
            description = f"{course_name} - {payment_transaction.payment_sub_type or 'Course Payment'}"
        else:
            description = payment_transaction.notes or 'Course Payment'

        received_from = payment_transaction.payer_name or student_name

        return IncomeService.record_income(payment_transaction.tenant_id, {
            'date': payment_transaction.paid_date,
            'amount': payment_transaction.paid_amount,
            'category': IncomeRecord.COURSE_FEES,
            'payment_mode': payment_transaction.payment_mode,
            'received_by': payment_transaction.received_by,
            'received_from': received_from,
            'description': description,
            'source_transaction_id': payment_transaction.pk,
        })
