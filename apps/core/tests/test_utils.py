from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase

from core.utils import (
    safe_decimal, quantize_money, calculate_percentage, at_local_hour,
    first_day_of_next_month, month_key, parse_month_key, parse_datetime_value,
    serialize_datetime,
)

KOLKATA = ZoneInfo('Asia/Kolkata')


class MoneyUtilsTestCase(SimpleTestCase):

    def test_safe_decimal(self):
        self.assertEqual(safe_decimal("1500.50"), Decimal('1500.50'))
        self.assertEqual(safe_decimal(3000), Decimal('3000'))
        self.assertEqual(safe_decimal("invalid"), Decimal('0.00'))
        self.assertEqual(safe_decimal(None), Decimal('0.00'))
        self.assertIsNone(safe_decimal("NaN", default=None))

    def test_quantize_money_rounds_half_up(self):
        self.assertEqual(quantize_money("10.005"), Decimal('10.01'))
        self.assertEqual(quantize_money(7), Decimal('7.00'))

    def test_collection_rate_percentage(self):
        """3000 of 6500 is 46.15%"""
        self.assertEqual(calculate_percentage(3000, 6500), Decimal('46.15'))

    def test_percentage_cap_and_zero_whole(self):
        self.assertEqual(calculate_percentage(8000, 6500, cap=100), Decimal('100.00'))
        self.assertEqual(calculate_percentage(100, 0), Decimal('0.00'))


class DateUtilsTestCase(SimpleTestCase):

    def test_at_local_hour_uses_local_calendar_day(self):
        # 20:00 UTC is already the next day in Kolkata
        value = datetime(2024, 3, 10, 20, 0, tzinfo=ZoneInfo('UTC'))
        result = at_local_hour(value, 9, KOLKATA)
        self.assertEqual(result, datetime(2024, 3, 11, 9, 0, tzinfo=KOLKATA))

    def test_first_day_of_next_month_rolls_over_year(self):
        self.assertEqual(first_day_of_next_month(date(2024, 12, 15)), date(2025, 1, 1))
        self.assertEqual(first_day_of_next_month(datetime(2024, 1, 31, 23, 0)), date(2024, 2, 1))

    def test_month_keys(self):
        self.assertEqual(month_key(date(2024, 3, 5)), '2024-03')
        self.assertEqual(parse_month_key('2024-03'), date(2024, 3, 1))

    def test_parse_datetime_value(self):
        parsed = parse_datetime_value('2024-03-10', KOLKATA)
        self.assertEqual(parsed, datetime(2024, 3, 10, 0, 0, tzinfo=KOLKATA))

        parsed = parse_datetime_value('2024-03-10T14:30:00+00:00', KOLKATA)
        self.assertEqual(parsed, datetime(2024, 3, 10, 14, 30, tzinfo=ZoneInfo('UTC')))

    def test_parse_datetime_value_rejects_invalid(self):
        self.assertIsNone(parse_datetime_value('not a date', KOLKATA))
        self.assertIsNone(parse_datetime_value('2024-02-30', KOLKATA))
        self.assertIsNone(parse_datetime_value('', KOLKATA))
        self.assertIsNone(parse_datetime_value(12345, KOLKATA))

    def test_serialize_datetime(self):
        self.assertIsNone(serialize_datetime(None))
        self.assertEqual(
            serialize_datetime(datetime(2024, 3, 10, 9, 0, tzinfo=KOLKATA)),
            '2024-03-10T09:00:00+05:30'
        )
