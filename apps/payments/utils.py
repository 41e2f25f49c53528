# payments/utils.py

"""
Payments helpers: invoice numbering and response formatting.
"""

from django.db import transaction, DatabaseError, OperationalError
from django.db.models import F
import logging
import random
import time

from core.models import PaymentSettings
from core.utils import get_tenant_current_time, serialize_datetime
from payments.exceptions import InvoiceSequenceUnavailable
from payments.models import InvoiceSequence

logger = logging.getLogger(__name__)

# Lock contention on the counter row is retried with a growing delay
SEQUENCE_ATTEMPTS = 10
SEQUENCE_RETRY_DELAY = 0.05


# =============================================================================
# INVOICE NUMBERING
# =============================================================================

def invoice_year_month(issued_at):
    """``YYYYMM`` key of an issue time"""
    return f"{issued_at.year:04d}{issued_at.month:02d}"


def format_invoice_number(prefix, year_month, value):
    """
    Example:
        >>> format_invoice_number('INV', '202403', 7)
        'INV-202403-0007'
    """
    return f"{prefix}-{year_month}-{value:04d}"


def next_invoice_number(tenant_id, year_month=None, prefix=None):
    """
    Issue the next invoice number of a tenant for a calendar month.

    The counter row is locked and incremented in the database, so
    concurrent callers never receive the same value. A caller that finds
    the row locked retries up to SEQUENCE_ATTEMPTS times. When called
    inside the payment's transaction the increment is rolled back with it.

    Args:
        tenant_id (str): Tenant issuing the invoice
        year_month (str): ``YYYYMM``; defaults to the tenant-local current month
        prefix (str): Defaults to the tenant's configured invoice prefix

    Returns:
        str: e.g. ``INV-202403-0007``

    Raises:
        InvoiceSequenceUnavailable: The counter could not be incremented,
            or stayed locked through every attempt
    """
    if prefix is None:
        prefix = PaymentSettings.get_for_tenant(tenant_id).invoice_prefix
    if year_month is None:
        year_month = invoice_year_month(get_tenant_current_time(tenant_id))

    for attempt in range(1, SEQUENCE_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                sequence, created = InvoiceSequence.objects.select_for_update().get_or_create(
                    tenant_id=tenant_id,
                    year_month=year_month,
                )
                InvoiceSequence.objects.filter(pk=sequence.pk).update(last_value=F('last_value') + 1)
                sequence.refresh_from_db(fields=['last_value'])
            break
        except OperationalError:
            if attempt == SEQUENCE_ATTEMPTS:
                logger.error(
                    f"Invoice sequence for tenant {tenant_id} {year_month} still locked "
                    f"after {attempt} attempts",
                    exc_info=True
                )
                raise InvoiceSequenceUnavailable(tenant_id, year_month)
            logger.debug(f"Invoice sequence for tenant {tenant_id} {year_month} locked (attempt {attempt})")
            time.sleep(SEQUENCE_RETRY_DELAY * attempt + random.uniform(0, SEQUENCE_RETRY_DELAY))
        except DatabaseError:
            logger.error(f"Invoice sequence unavailable for tenant {tenant_id} {year_month}", exc_info=True)
            raise InvoiceSequenceUnavailable(tenant_id, year_month)

    if created:
        logger.info(f"Started invoice sequence {year_month} for tenant {tenant_id}")

    return format_invoice_number(prefix, year_month, sequence.last_value)


# =============================================================================
# RESPONSE FORMATTING
# =============================================================================

def _money(value):
    return str(value) if value is not None else None


def format_ledger_for_response(ledger):
    """JSON-ready representation of a ledger"""
    outstanding = ledger.get_outstanding()
    return {
        'id': str(ledger.pk),
        'student_id': str(ledger.student_id),
        'student_name': ledger.student_name,
        'course_name': ledger.course_name,
        'course_type': ledger.course_type,
        'course_fee': _money(ledger.course_fee),
        'course_registration_fee': _money(ledger.course_registration_fee),
        'student_registration_fee': _money(ledger.student_registration_fee),
        'course_registration_fee_paid': ledger.course_registration_fee_paid,
        'student_registration_fee_paid': ledger.student_registration_fee_paid,
        'total_fees': _money(ledger.get_total_fees()),
        'received_amount': _money(ledger.received_amount),
        'outstanding_amount': _money(outstanding.as_stored()) if outstanding.is_applicable else None,
        'outstanding_applicable': outstanding.is_applicable,
        'collection_rate': _money(ledger.collection_rate),
        'status': ledger.status,
        'plan_type': ledger.plan_type,
        'payment_option': ledger.payment_option,
        'installments_config': ledger.installments_config,
        'monthly_subscription': ledger.monthly_subscription,
        'next_due_date': serialize_datetime(ledger.next_due_date),
        'next_reminder_date': serialize_datetime(ledger.next_reminder_date),
        'reminder_enabled': ledger.reminder_enabled,
        'reminder_frequency': ledger.reminder_frequency,
        'last_payment_date': serialize_datetime(ledger.last_payment_date),
        'version': ledger.version,
    }


def format_transaction_for_response(payment_transaction):
    """JSON-ready representation of a transaction"""
    return {
        'id': str(payment_transaction.pk),
        'payment_id': str(payment_transaction.payment_id),
        'paid_amount': _money(payment_transaction.paid_amount),
        'paid_date': serialize_datetime(payment_transaction.paid_date),
        'payment_time': payment_transaction.payment_time,
        'payment_mode': payment_transaction.payment_mode,
        'payer_type': payment_transaction.payer_type,
        'payer_name': payment_transaction.payer_name,
        'received_by': payment_transaction.received_by,
        'plan_type': payment_transaction.plan_type,
        'payment_option': payment_transaction.payment_option,
        'payment_sub_type': payment_transaction.payment_sub_type,
        'installment_number': payment_transaction.installment_number,
        'emi_number': payment_transaction.emi_number,
        'subscription_month': payment_transaction.subscription_month,
        'discount': _money(payment_transaction.discount),
        'special_charges': _money(payment_transaction.special_charges),
        'notes': payment_transaction.notes,
        'invoice_number': payment_transaction.invoice_number,
        'invoice_generated': payment_transaction.invoice_generated,
        'invoice_url': payment_transaction.invoice_url,
        'status': payment_transaction.status,
    }
