# payments/installments.py

"""
Installment (EMI) schedules.

The schedule is embedded in the ledger as JSON::

    {
        "total_amount": "6500.00",
        "installment_count": 3,
        "course_duration": 90,
        "installments": [
            {"installment_number": 1, "stage": "first", "amount": "2166.66",
             "due_date": "2024-02-01T10:00:00+05:30",
             "reminder_date": "2024-01-30T10:00:00+05:30",
             "status": "UNPAID", "paid_date": null, "paid_amount": null,
             "transaction_id": null},
            ...
        ]
    }

Functions here never modify the config they are given; they return a new
one together with the ledger fields that follow from it.
"""

from copy import deepcopy
from datetime import timedelta
from decimal import Decimal, ROUND_DOWN
import logging

from core.utils import (
    safe_decimal, quantize_money, parse_datetime_value, serialize_datetime,
)
from payments.exceptions import UnknownInstallment, AlreadyPaid, InvalidInstallmentSchedule

logger = logging.getLogger(__name__)

UNPAID = 'UNPAID'
PAID = 'PAID'

DEFAULT_INSTALLMENT_COUNT = 3
DEFAULT_REMINDER_DAYS_BEFORE = 2


# =============================================================================
# SCHEDULE GENERATION
# =============================================================================

def installment_stage(installment_number, installment_count):
    """first / middle / last"""
    if installment_number == 1:
        return 'first'
    if installment_number == installment_count:
        return 'last'
    return 'middle'


def split_duration(start, end, installment_count):
    """Due dates splitting ``start``..``end`` into equal periods"""
    total_days = (end - start).days
    days_per_installment = total_days // installment_count

    due_dates = []
    for index in range(installment_count):
        due_date = start + timedelta(days=(index + 1) * days_per_installment)
        if index == installment_count - 1 and due_date > end:
            due_date = end
        due_dates.append(due_date)
    return due_dates


def split_amount(total_amount, installment_count):
    """Equal installment amounts; the rounding remainder goes on the last one"""
    total_amount = quantize_money(total_amount)
    base = (total_amount / installment_count).quantize(Decimal('0.01'), rounding=ROUND_DOWN)
    amounts = [base] * (installment_count - 1)
    amounts.append(total_amount - base * (installment_count - 1))
    return amounts


def build_installment_schedule(start, end, total_amount, installment_count=DEFAULT_INSTALLMENT_COUNT,
                               reminder_days_before=DEFAULT_REMINDER_DAYS_BEFORE):
    """
    Generate an installment schedule over a course period.

    Args:
        start: Course start (aware datetime)
        end: Course end (aware datetime)
        total_amount: Amount to split
        installment_count: Number of installments (>= 2)
        reminder_days_before: Reminder lead before each due date

    Returns:
        dict: Installments config ready to embed in the ledger

    Raises:
        InvalidInstallmentSchedule: If the inputs cannot produce a schedule
    """
    total_amount = safe_decimal(total_amount)

    if installment_count < 2:
        raise InvalidInstallmentSchedule("An installment plan needs at least 2 installments")
    if start >= end:
        raise InvalidInstallmentSchedule("Start date must be before end date")
    if total_amount <= 0:
        raise InvalidInstallmentSchedule("Total amount must be greater than 0")
    if (end - start).days < installment_count:
        raise InvalidInstallmentSchedule(
            f"Course period is too short for {installment_count} installments"
        )

    due_dates = split_duration(start, end, installment_count)
    amounts = split_amount(total_amount, installment_count)

    installments = []
    for index, (due_date, amount) in enumerate(zip(due_dates, amounts)):
        number = index + 1
        installments.append({
            'installment_number': number,
            'stage': installment_stage(number, installment_count),
            'amount': str(amount),
            'due_date': serialize_datetime(due_date),
            'reminder_date': serialize_datetime(due_date - timedelta(days=reminder_days_before)),
            'status': UNPAID,
            'paid_date': None,
            'paid_amount': None,
            'transaction_id': None,
        })

    return {
        'total_amount': str(quantize_money(total_amount)),
        'installment_count': installment_count,
        'course_duration': (end - start).days,
        'installments': installments,
    }


# =============================================================================
# VALIDATION
# =============================================================================

def load_installments_config(data):
    """
    Normalize an installments config received from a client.

    Dates become ISO strings, amounts decimal strings, and missing statuses
    UNPAID. ``course_duration`` may be given as days or as
    ``{"duration_in_days": n}``.

    Raises:
        InvalidInstallmentSchedule: If the structure or a value is malformed
    """
    if not isinstance(data, dict) or not isinstance(data.get('installments'), list):
        raise InvalidInstallmentSchedule("Installments config must contain an 'installments' list")

    course_duration = data.get('course_duration')
    if isinstance(course_duration, dict):
        course_duration = course_duration.get('duration_in_days')

    installments = []
    for index, item in enumerate(data['installments']):
        if not isinstance(item, dict):
            raise InvalidInstallmentSchedule(f"Installment {index + 1} is malformed")

        due_date = parse_datetime_value(item.get('due_date'))
        reminder_date = parse_datetime_value(item.get('reminder_date'))
        if due_date is None or reminder_date is None:
            raise InvalidInstallmentSchedule(f"Installment {index + 1}: invalid due or reminder date")

        try:
            number = int(item.get('installment_number', index + 1))
        except (TypeError, ValueError):
            raise InvalidInstallmentSchedule(f"Installment {index + 1}: invalid installment number")

        status = item.get('status') or UNPAID
        if status not in (UNPAID, PAID):
            raise InvalidInstallmentSchedule(f"Installment {number}: unknown status '{status}'")

        installments.append({
            'installment_number': number,
            'stage': item.get('stage') or '',
            'amount': str(quantize_money(item.get('amount'))),
            'due_date': serialize_datetime(due_date),
            'reminder_date': serialize_datetime(reminder_date),
            'status': status,
            'paid_date': item.get('paid_date'),
            'paid_amount': item.get('paid_amount'),
            'transaction_id': item.get('transaction_id'),
        })

    try:
        count = int(data.get('installment_count') or len(installments))
    except (TypeError, ValueError):
        raise InvalidInstallmentSchedule("Installment count must be a number")

    for installment in installments:
        if not installment['stage']:
            installment['stage'] = installment_stage(installment['installment_number'], count)

    total_amount = data.get('total_amount')
    if total_amount in (None, ''):
        total_amount = sum((Decimal(inst['amount']) for inst in installments), Decimal('0.00'))

    return {
        'total_amount': str(quantize_money(total_amount)),
        'installment_count': count,
        'course_duration': course_duration,
        'installments': installments,
    }


def get_schedule_errors(config):
    """List of problems with an installments config (empty when valid)"""
    errors = []
    installments = config.get('installments') or []

    if len(installments) != config.get('installment_count'):
        errors.append(f"Must have exactly {config.get('installment_count')} installments")

    numbers = [inst['installment_number'] for inst in installments]
    if len(set(numbers)) != len(numbers):
        errors.append("Installment numbers must be unique")

    total = sum((safe_decimal(inst['amount']) for inst in installments), Decimal('0.00'))
    if quantize_money(total) != quantize_money(config.get('total_amount')):
        errors.append("Sum of installment amounts must equal total amount")

    due_dates = [parse_datetime_value(inst['due_date']) for inst in installments]
    for index in range(1, len(due_dates)):
        if due_dates[index] <= due_dates[index - 1]:
            errors.append("Installment due dates must be in ascending order")
            break

    for inst, due_date in zip(installments, due_dates):
        if parse_datetime_value(inst['reminder_date']) >= due_date:
            errors.append(f"Installment {inst['installment_number']}: reminder date must be before due date")

    return errors


def validate_installment_schedule(config):
    """
    Raises:
        InvalidInstallmentSchedule: With all problems found
    """
    errors = get_schedule_errors(config)
    if errors:
        raise InvalidInstallmentSchedule('; '.join(errors), code='invalid_schedule')
    return config


# =============================================================================
# PAYMENT TRACKING
# =============================================================================

def next_unpaid_installment(config):
    """First UNPAID installment in stored order, or None"""
    for installment in (config or {}).get('installments', []):
        if installment['status'] == UNPAID:
            return installment
    return None


def mark_installment_paid(config, installment_number, paid_at, paid_amount, transaction_id):
    """
    Mark one installment PAID and derive the next due/reminder dates.

    Args:
        config: Current installments config (not modified)
        installment_number: Installment being paid
        paid_at: Payment datetime
        paid_amount: Amount paid
        transaction_id: Transaction recording the payment

    Returns:
        tuple: (new config, ledger fields dict)

    Raises:
        UnknownInstallment: No installment has this number
        AlreadyPaid: The installment is already PAID
    """
    updated = deepcopy(config)
    target = None
    for installment in updated.get('installments', []):
        if installment['installment_number'] == installment_number:
            target = installment
            break

    if target is None:
        raise UnknownInstallment(installment_number)

    if target['status'] == PAID:
        raise AlreadyPaid(
            f"Installment {installment_number} was already paid "
            f"(transaction {target.get('transaction_id')})"
        )

    target.update({
        'status': PAID,
        'paid_date': serialize_datetime(paid_at),
        'paid_amount': str(quantize_money(paid_amount)),
        'transaction_id': str(transaction_id),
    })

    next_installment = next_unpaid_installment(updated)
    if next_installment:
        fields = {
            'next_due_date': parse_datetime_value(next_installment['due_date']),
            'next_reminder_date': parse_datetime_value(next_installment['reminder_date']),
            'reminder_enabled': True,
        }
        logger.debug(f"Installment {installment_number} paid; next due is #{next_installment['installment_number']}")
    else:
        fields = {
            'next_due_date': None,
            'next_reminder_date': None,
            'reminder_enabled': False,
        }
        logger.debug(f"Installment {installment_number} paid; schedule complete")

    fields['installments_config'] = updated
    return updated, fields


def paid_installment_count(config):
    return sum(1 for inst in (config or {}).get('installments', []) if inst['status'] == PAID)
