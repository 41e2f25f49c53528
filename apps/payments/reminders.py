# payments/reminders.py

"""
Reminder scheduling.

After a payment the ledger's reminder fields
(``reminder_enabled``, ``reminder_frequency``, ``next_due_date``,
``next_reminder_date``) are derived from the plan and the new balance:

- One-time, partially paid: daily reminders from the next day
- One-time, fully paid: reminders off, dates cleared, ledger Completed
- Any other plan, fully paid: reminders off, dates cleared
- EMI / monthly: the installment tracker or subscription engine sets the
  dates; the generic next-payment rule only runs when neither did
- ``stop_reminders`` always wins (applied as the last update fragment)

``find_due_reminders`` and ``record_reminder_sent`` drive the
``send_payment_reminders`` command.
"""

from datetime import timedelta
import logging

from django.conf import settings
from django.db.models import Q

from core.utils import at_local_hour, first_day_of_next_month, localize_datetime
from payments.ledger import write_ledger
from payments.models import (
    Payment, PLAN_ONE_TIME, PLAN_MONTHLY_SUBSCRIPTION, STATUS_COMPLETED,
    REMINDER_NONE, REMINDER_DAILY, REMINDER_WEEKLY, REMINDER_MONTHLY,
)
from payments.updates import LedgerUpdate

logger = logging.getLogger(__name__)

# Hour of the day by which a partially paid one-time plan is due again
ONE_TIME_DUE_HOUR = 10


# =============================================================================
# FRAGMENTS
# =============================================================================

def settled_reminders():
    """Reminder fields of a ledger whose balance is settled"""
    return {
        'reminder_enabled': False,
        'reminder_frequency': REMINDER_NONE,
        'next_due_date': None,
        'next_reminder_date': None,
        'status': STATUS_COMPLETED,
    }


def one_time_reminders(will_be_fully_paid, paid_at, tz, reminder_hour):
    """Reminder fields of a one-time plan after a payment"""
    if will_be_fully_paid:
        return settled_reminders()

    next_day = localize_datetime(paid_at, tz) + timedelta(days=1)
    return {
        'reminder_enabled': True,
        'reminder_frequency': REMINDER_DAILY,
        'next_due_date': at_local_hour(next_day, ONE_TIME_DUE_HOUR, tz),
        'next_reminder_date': at_local_hour(next_day, reminder_hour, tz),
    }


def generic_reminders(next_payment_date, reminder_enabled, now, tz, lead_days, reminder_hour):
    """
    Reminder ahead of a known next payment date.

    The reminder goes out ``lead_days`` before the payment date, but never
    earlier than tomorrow.
    """
    fields = {'next_due_date': next_payment_date}
    if not reminder_enabled or next_payment_date is None:
        fields.update({'reminder_enabled': False, 'next_reminder_date': None})
        return fields

    reminder_date = next_payment_date - timedelta(days=lead_days)
    tomorrow = at_local_hour(localize_datetime(now, tz) + timedelta(days=1), reminder_hour, tz)
    fields.update({
        'reminder_enabled': True,
        'next_reminder_date': max(reminder_date, tomorrow),
    })
    return fields


def stop_reminders():
    """Explicit stop: overrides every other reminder decision"""
    return {
        'reminder_enabled': False,
        'reminder_frequency': REMINDER_NONE,
        'next_reminder_date': None,
    }


def schedule_reminders(plan_type, folded, payment_request, will_be_fully_paid, now, tz, payment_settings):
    """
    Reminder fragment of a payment.

    Args:
        plan_type (str): Canonical plan type
        folded (dict): Ledger update folded up to the reminders fragment
        payment_request: Parsed PaymentRequest
        will_be_fully_paid (bool): Balance is settled after this payment
        now: Current time
        tz: Tenant timezone
        payment_settings: core.PaymentSettings of the tenant

    Returns:
        dict: Fields for the 'reminders' fragment
    """
    reminder_hour = payment_settings.reminder_hour

    if plan_type == PLAN_ONE_TIME:
        return one_time_reminders(will_be_fully_paid, payment_request.paid_at, tz, reminder_hour)

    if will_be_fully_paid:
        return settled_reminders()

    # Installment tracker or subscription engine already scheduled
    if 'next_due_date' in folded and 'next_reminder_date' in folded:
        return {}

    fields = {}
    if payment_request.reminder_frequency:
        fields['reminder_frequency'] = payment_request.reminder_frequency

    if payment_request.next_reminder_date is not None:
        fields.update({
            'reminder_enabled': payment_request.reminder_enabled is not False,
            'next_reminder_date': payment_request.next_reminder_date,
        })
        if payment_request.next_payment_date is not None:
            fields['next_due_date'] = payment_request.next_payment_date
        return fields

    if payment_request.next_payment_date is not None:
        fields.update(generic_reminders(
            payment_request.next_payment_date,
            bool(payment_request.reminder_enabled),
            now,
            tz,
            payment_settings.reminder_lead_days,
            reminder_hour,
        ))
    elif payment_request.reminder_enabled is not None:
        fields['reminder_enabled'] = payment_request.reminder_enabled

    return fields


# =============================================================================
# DUE REMINDERS
# =============================================================================

def find_due_reminders(now, tenant_id=None, limit=None):
    """
    Ledgers with reminders enabled whose next reminder date has passed.

    Settled ledgers are skipped: Completed ones, and any non-subscription
    ledger with nothing outstanding.

    Args:
        now: Cut-off datetime
        tenant_id: Restrict to one tenant
        limit: Maximum number of ledgers (defaults to PAYMENT_REMINDER_BATCH_SIZE)
    """
    queryset = Payment.objects.filter(
        reminder_enabled=True,
        next_reminder_date__isnull=False,
        next_reminder_date__lte=now,
    ).filter(
        Q(plan_type=PLAN_MONTHLY_SUBSCRIPTION) | Q(outstanding_amount__gt=0)
    ).exclude(status=STATUS_COMPLETED).exclude(tenant_id__isnull=True).exclude(tenant_id='')

    if tenant_id:
        queryset = queryset.filter(tenant_id=tenant_id)

    limit = limit or getattr(settings, 'PAYMENT_REMINDER_BATCH_SIZE', 200)
    return queryset.select_related('student').order_by('next_reminder_date')[:limit]


def next_reminder_after(ledger, sent_at, tz, reminder_hour):
    """
    Following reminder date for the ledger's frequency.

    DAILY and WEEKLY step from the current reminder date until it lies after
    ``sent_at``; MONTHLY moves to the first day of the following month. NONE
    reminders are one-shot.
    """
    frequency = ledger.reminder_frequency
    if frequency == REMINDER_MONTHLY:
        return at_local_hour(first_day_of_next_month(localize_datetime(sent_at, tz)), reminder_hour, tz)

    if frequency in (REMINDER_DAILY, REMINDER_WEEKLY):
        step = timedelta(days=1 if frequency == REMINDER_DAILY else 7)
        next_date = ledger.next_reminder_date or sent_at
        while next_date <= sent_at:
            next_date += step
        return next_date

    return None


def record_reminder_sent(ledger, sent_at, tz, reminder_hour, delivered=True):
    """
    Advance a ledger's reminder after a reminder run.

    Args:
        ledger: Payment whose reminder was due
        sent_at: Time of the run
        tz: Tenant timezone
        reminder_hour: Local hour for MONTHLY reminders
        delivered: False when nothing could be sent (e.g. no email
            address); the date still advances but the sent count does not

    Returns:
        Payment: The refreshed ledger
    """
    fields = {'next_reminder_date': next_reminder_after(ledger, sent_at, tz, reminder_hour)}
    if delivered:
        fields.update({
            'last_reminder_sent_at': sent_at,
            'reminders_count': ledger.reminders_count + 1,
        })

    ledger = write_ledger(ledger, LedgerUpdate().with_fragment('reminders', fields))
    logger.info(
        f"Reminder {'sent' if delivered else 'skipped'} for ledger {ledger.pk}; "
        f"next {ledger.next_reminder_date}"
    )
    return ledger
