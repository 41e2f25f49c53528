# core/utils.py

"""
Central utilities shared by all apps: money arithmetic and
tenant-local date/time handling.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from zoneinfo import ZoneInfo
import logging

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


# =============================================================================
# NUMBER & CALCULATION UTILITIES
# =============================================================================

def safe_decimal(value, default=Decimal('0.00')):
    """
    Safely convert value to Decimal.

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Decimal: Converted value or default

    Example:
        >>> safe_decimal("1500.50")
        Decimal('1500.50')
        >>> safe_decimal("invalid")
        Decimal('0.00')
    """
    if value is None or value == '':
        return default
    try:
        result = Decimal(str(value))
    except (ValueError, TypeError, InvalidOperation):
        return default
    if not result.is_finite():
        return default
    return result


def quantize_money(amount):
    """Round to two decimal places (half up)"""
    return safe_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_percentage(part, whole, decimal_places=2, cap=None):
    """
    Calculate percentage with safe division.

    Args:
        part: The part value
        whole: The whole value
        decimal_places: Number of decimal places (default: 2)
        cap: Optional upper bound for the result

    Returns:
        Decimal: Percentage value, 0 if whole is 0
    """
    part = safe_decimal(part)
    whole = safe_decimal(whole)

    if whole <= 0:
        return Decimal('0.00')

    percentage = (part / whole) * 100
    if cap is not None and percentage > cap:
        percentage = Decimal(cap)
    return percentage.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)


# =============================================================================
# TIMEZONE UTILITY FUNCTIONS
# =============================================================================

def get_tenant_timezone(tenant_id):
    """
    Get the operational timezone of an academy.

    Returns:
        ZoneInfo: Tenant timezone (defaults to settings.TIME_ZONE)
    """
    from core.models import PaymentSettings

    if not tenant_id:
        return ZoneInfo(settings.TIME_ZONE)
    return PaymentSettings.get_for_tenant(tenant_id).get_timezone()


def get_tenant_current_time(tenant_id):
    """Current time in the tenant's timezone"""
    return timezone.now().astimezone(get_tenant_timezone(tenant_id))


def localize_datetime(dt, tz):
    """
    Convert a datetime to the given timezone.

    Naive datetimes are interpreted as already being local to ``tz``.
    """
    if timezone.is_naive(dt):
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def at_local_hour(value, hour, tz):
    """
    Aware datetime for ``hour``:00 on the local calendar day of ``value``.

    Args:
        value: date or datetime
        hour: Hour of day (0-23)
        tz: ZoneInfo used to read the calendar day and build the result
    """
    if isinstance(value, datetime):
        day = localize_datetime(value, tz).date()
    else:
        day = value
    return datetime.combine(day, time(hour=hour), tzinfo=tz)


def first_day_of_next_month(value):
    """
    First calendar day of the month following ``value``.

    Example:
        >>> first_day_of_next_month(date(2024, 12, 15))
        datetime.date(2025, 1, 1)
    """
    if isinstance(value, datetime):
        value = value.date()
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


def month_key(value):
    """``YYYY-MM`` key of a date or datetime"""
    return f"{value.year:04d}-{value.month:02d}"


def parse_month_key(key):
    """First day of the month named by a ``YYYY-MM`` key"""
    year, month = key.split('-')
    return date(int(year), int(month), 1)


# =============================================================================
# DATE PARSING
# =============================================================================

def parse_datetime_value(value, tz=None):
    """
    Parse a datetime, date or ISO-8601 string into an aware datetime.

    Plain dates become midnight in ``tz`` (or the current timezone).

    Returns:
        datetime or None: None when the value cannot be parsed
    """
    tz = tz or timezone.get_current_timezone()

    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        return localize_datetime(value, tz) if timezone.is_naive(value) else value

    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz)

    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        parsed = parse_datetime(text)
        if parsed is None:
            parsed_date = parse_date(text)
            if parsed_date is None:
                return None
            return datetime.combine(parsed_date, time.min, tzinfo=tz)
    except ValueError:
        # Well formed but impossible values, e.g. 2024-02-30
        return None

    if timezone.is_naive(parsed):
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def serialize_datetime(value):
    """ISO-8601 text for JSON columns; None stays None"""
    if value is None:
        return None
    return value.isoformat()
