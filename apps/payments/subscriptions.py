# payments/subscriptions.py

"""
Monthly subscription bookkeeping.

A subscription ledger has no running balance. Each month is a separate
charge: paying marks the current month PAID, moves the subscription on to
the next month and schedules that month's reminder. A WITH_DISCOUNTS
subscriber pays the discounted fee only while fewer months than the
commitment period have been paid.
"""

from copy import deepcopy
import logging

from core.utils import (
    safe_decimal, quantize_money, at_local_hour, first_day_of_next_month,
    month_key, parse_month_key, localize_datetime, serialize_datetime,
)
from payments.exceptions import AlreadyPaid, PaymentValidationError
from payments.models import STATUS_PAID, REMINDER_MONTHLY

logger = logging.getLogger(__name__)

STANDARD = 'STANDARD'
WITH_DISCOUNTS = 'WITH_DISCOUNTS'

PAID = 'PAID'
UNPAID = 'UNPAID'


def load_subscription_config(data, paid_at, tz, discounted=False):
    """
    Build the embedded subscription from client data.

    Args:
        data (dict): type, current_month, monthly_fee, original_monthly_fee,
            discounted_monthly_fee, commitment_period, monthly_records
        paid_at: Payment datetime; its local month is the default current month
        tz: Tenant timezone
        discounted: Plan was selected as MONTHLY_WITH_DISCOUNTS

    Raises:
        PaymentValidationError: Malformed month or fee values
    """
    data = data or {}
    subscription_type = data.get('type') or (WITH_DISCOUNTS if discounted else STANDARD)
    if subscription_type not in (STANDARD, WITH_DISCOUNTS):
        raise PaymentValidationError(f"Unknown subscription type '{subscription_type}'")

    current_month = data.get('current_month') or month_key(localize_datetime(paid_at, tz))
    try:
        parse_month_key(current_month)
    except (ValueError, AttributeError):
        raise PaymentValidationError(f"Invalid subscription month '{current_month}' (expected YYYY-MM)")

    monthly_fee = quantize_money(data.get('monthly_fee'))
    original_fee = quantize_money(data.get('original_monthly_fee') or monthly_fee)
    discounted_fee = quantize_money(data.get('discounted_monthly_fee'))
    if subscription_type == WITH_DISCOUNTS and discounted_fee <= 0:
        raise PaymentValidationError("A discounted subscription needs a discounted monthly fee")

    commitment = data.get('commitment_period')
    try:
        commitment = int(commitment) if commitment not in (None, '') else None
    except (TypeError, ValueError):
        raise PaymentValidationError("Commitment period must be a whole number of months")

    records = []
    for record in data.get('monthly_records') or []:
        if not isinstance(record, dict) or not record.get('month'):
            raise PaymentValidationError("Every monthly record needs a month")
        records.append({
            'month': record['month'],
            'status': record.get('status') or UNPAID,
            'amount': str(quantize_money(record.get('amount'))),
            'paid_date': record.get('paid_date'),
            'transaction_id': record.get('transaction_id'),
        })

    return {
        'type': subscription_type,
        'current_month': current_month,
        'monthly_fee': str(monthly_fee or original_fee),
        'original_monthly_fee': str(original_fee),
        'discounted_monthly_fee': str(discounted_fee),
        'commitment_period': commitment,
        'is_first_payment': data.get('is_first_payment', not any(r['status'] == PAID for r in records)),
        'monthly_records': records,
    }


def paid_month_count(subscription):
    return sum(1 for record in subscription.get('monthly_records', []) if record['status'] == PAID)


def next_month_fee(subscription, paid_months):
    """
    Fee of the month after ``paid_months`` paid months.

    The discount applies only while paid_months < commitment_period.
    """
    commitment = subscription.get('commitment_period')
    still_in_commitment = paid_months < commitment if commitment else False
    if subscription.get('type') == WITH_DISCOUNTS and still_in_commitment:
        return safe_decimal(subscription.get('discounted_monthly_fee'))
    return safe_decimal(subscription.get('original_monthly_fee'))


def advance_month(subscription, paid_at, amount, transaction_id, tz, reminder_hour=9):
    """
    Record the payment of the current month and move to the next one.

    Args:
        subscription: Embedded subscription (not modified)
        paid_at: Payment datetime
        amount: Amount paid for the month
        transaction_id: Transaction recording the payment
        tz: Tenant timezone for the next reminder
        reminder_hour: Local hour of the next reminder

    Returns:
        tuple: (new subscription, ledger fields dict)

    Raises:
        AlreadyPaid: The current month is already PAID
    """
    updated = deepcopy(subscription)
    current_month = updated['current_month']
    records = updated.setdefault('monthly_records', [])

    record = next((r for r in records if r['month'] == current_month), None)
    if record is None:
        record = {'month': current_month, 'status': UNPAID, 'amount': '0.00'}
        records.append(record)
    elif record['status'] == PAID:
        raise AlreadyPaid(f"Subscription month {current_month} is already paid")

    record.update({
        'status': PAID,
        'amount': str(quantize_money(amount)),
        'paid_date': serialize_datetime(paid_at),
        'transaction_id': str(transaction_id),
    })

    paid_months = paid_month_count(updated)
    fee = next_month_fee(updated, paid_months)
    next_month = first_day_of_next_month(parse_month_key(current_month))

    updated.update({
        'current_month': month_key(next_month),
        'monthly_fee': str(quantize_money(fee)),
        'next_month_fee': str(quantize_money(fee)),
        'is_first_payment': False,
        'last_updated': serialize_datetime(paid_at),
    })

    logger.debug(
        f"Subscription month {current_month} paid ({paid_months} paid); next month fee {fee}"
    )

    fields = {
        'monthly_subscription': updated,
        'status': STATUS_PAID,
        'next_due_date': at_local_hour(next_month, 0, tz),
        'next_reminder_date': at_local_hour(next_month, reminder_hour, tz),
        'reminder_enabled': True,
        'reminder_frequency': REMINDER_MONTHLY,
    }
    return updated, fields
