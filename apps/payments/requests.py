# payments/requests.py

"""
Parsing of payment submissions.

``PaymentRequest.from_data`` turns a raw request body into typed values and
rejects malformed input before anything is read from or written to the
database. Keys are accepted in snake_case or camelCase.
"""

from datetime import datetime
import logging

from core.utils import safe_decimal, quantize_money, parse_datetime_value
from payments.exceptions import (
    PaymentValidationError, MissingFields, InvalidAmount, InvalidDate,
)
from payments.models import PaymentTransaction, REMINDER_FREQUENCY_CHOICES
from payments.plans import normalize_plan

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    'student_id',
    'amount',
    'payment_mode',
    'payment_date',
    'plan_type',
    'received_by',
)

TRUE_VALUES = (True, 1, '1', 'true', 'True', 'TRUE', 'yes', 'on')

PAYER_TYPES = [choice for choice, label in PaymentTransaction.PAYER_TYPE_CHOICES]
REMINDER_FREQUENCIES = [choice for choice, label in REMINDER_FREQUENCY_CHOICES]


def camel_case(name):
    """
    Example:
        >>> camel_case('student_id')
        'studentId'
    """
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def get_value(data, name, default=None):
    """Value of ``name`` in snake_case or camelCase; empty strings count as absent"""
    for key in (name, camel_case(name)):
        value = data.get(key)
        if value is not None and value != '':
            return value
    return default


def parse_bool(value):
    if value is None:
        return None
    return value in TRUE_VALUES


def parse_positive_int(value, field_name, minimum=0):
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise PaymentValidationError(f"{field_name} must be a whole number", code='invalid_number')
    if number < minimum:
        raise PaymentValidationError(f"{field_name} must be at least {minimum}", code='invalid_number')
    return number


def parse_optional_date(value, field_name, tz):
    if value is None:
        return None
    parsed = parse_datetime_value(value, tz)
    if parsed is None:
        raise InvalidDate(f"Invalid {field_name}: '{value}'", code='invalid_date')
    return parsed


class PaymentRequest:
    """A validated payment submission"""

    def __init__(self, **fields):
        for name, value in fields.items():
            setattr(self, name, value)

    def __repr__(self):
        return (
            f"PaymentRequest(student={self.student_id}, amount={self.amount}, "
            f"plan={self.plan.selection})"
        )

    @classmethod
    def from_data(cls, data, tz):
        """
        Parse and validate a payment submission.

        Args:
            data (dict): Request body
            tz: Tenant timezone used for dates without an offset

        Returns:
            PaymentRequest

        Raises:
            MissingFields: A required field is absent
            InvalidPlanType: Unknown plan selection
            InvalidAmount: Amount not a number or not greater than 0
            InvalidDate: Unparsable payment or reminder date
            PaymentValidationError: Other malformed values
        """
        if not isinstance(data, dict):
            raise PaymentValidationError("Payment data must be an object", code='invalid_body')

        missing = [name for name in REQUIRED_FIELDS if get_value(data, name) is None]
        if missing:
            raise MissingFields(missing)

        plan = normalize_plan(get_value(data, 'plan_type'))

        raw_amount = get_value(data, 'amount')
        amount = safe_decimal(raw_amount, default=None)
        if amount is None:
            raise InvalidAmount(f"Invalid payment amount: '{raw_amount}'", code='invalid_amount')
        if amount <= 0:
            raise InvalidAmount("Payment amount must be greater than 0", code='invalid_amount')

        payment_date = get_value(data, 'payment_date')
        paid_at = parse_datetime_value(payment_date, tz)
        if paid_at is None:
            raise InvalidDate(f"Invalid payment date: '{payment_date}'", code='invalid_date')

        payment_time = str(get_value(data, 'payment_time', ''))
        if payment_time and isinstance(payment_date, str) and len(payment_date.strip()) <= 10:
            try:
                clock = datetime.strptime(payment_time, '%H:%M')
                paid_at = paid_at.replace(hour=clock.hour, minute=clock.minute)
            except ValueError:
                logger.debug(f"Ignoring unparsable payment time '{payment_time}'")

        emi_index = parse_positive_int(get_value(data, 'emi_index'), 'EMI index')
        installment_number = parse_positive_int(
            get_value(data, 'installment_number'), 'Installment number', minimum=1
        )
        if installment_number is None and emi_index is not None:
            installment_number = emi_index + 1
        if plan.is_installment_plan and installment_number is None:
            raise MissingFields(['installment_number'])

        discount = quantize_money(get_value(data, 'discount'))
        special_charges = quantize_money(get_value(data, 'special_charges'))
        if discount < 0 or special_charges < 0:
            raise PaymentValidationError("Discount and special charges cannot be negative")

        payer_type = str(get_value(data, 'payer_type', 'student')).lower()
        if payer_type not in PAYER_TYPES:
            raise PaymentValidationError(
                f"Invalid payer type '{payer_type}'. Must be one of: {', '.join(PAYER_TYPES)}"
            )

        reminder_frequency = get_value(data, 'reminder_frequency')
        if reminder_frequency is not None:
            reminder_frequency = str(reminder_frequency).upper()
            if reminder_frequency not in REMINDER_FREQUENCIES:
                raise PaymentValidationError(f"Invalid reminder frequency '{reminder_frequency}'")

        installments_config = get_value(data, 'installments_config')
        monthly_subscription = get_value(data, 'monthly_subscription')
        for name, value in (('installments_config', installments_config),
                            ('monthly_subscription', monthly_subscription)):
            if value is not None and not isinstance(value, dict):
                raise PaymentValidationError(f"{name} must be an object")

        return cls(
            student_id=str(get_value(data, 'student_id')),
            payment_id=get_value(data, 'payment_id'),
            amount=quantize_money(amount),
            payment_mode=str(get_value(data, 'payment_mode')),
            paid_at=paid_at,
            payment_time=payment_time,
            plan=plan,
            payment_option=get_value(data, 'payment_option') or plan.default_payment_option,
            emi_index=emi_index,
            installment_number=installment_number,
            installments_config=installments_config,
            monthly_subscription=monthly_subscription,
            discount=discount,
            special_charges=special_charges,
            received_by=str(get_value(data, 'received_by')),
            payer_type=payer_type,
            payer_name=str(get_value(data, 'payer_name', '')),
            notes=str(get_value(data, 'notes', '')),
            stop_reminders=bool(parse_bool(get_value(data, 'stop_reminders'))),
            reminder_enabled=parse_bool(get_value(data, 'reminder_enabled')),
            reminder_frequency=reminder_frequency,
            next_reminder_date=parse_optional_date(
                get_value(data, 'next_reminder_date'), 'next reminder date', tz
            ),
            next_payment_date=parse_optional_date(
                get_value(data, 'next_payment_date'), 'next payment date', tz
            ),
            payment_sub_type=str(get_value(data, 'payment_sub_type', '')),
        )
