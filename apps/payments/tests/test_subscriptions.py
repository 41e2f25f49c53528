from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase

from payments.exceptions import AlreadyPaid, PaymentValidationError
from payments.subscriptions import (
    load_subscription_config, advance_month, next_month_fee, paid_month_count,
)

TZ = ZoneInfo('Asia/Kolkata')
PAID_AT = datetime(2024, 5, 3, 11, 30, tzinfo=TZ)


def discounted_subscription(paid_months=4, current_month='2024-05'):
    records = [
        {'month': f'2024-{month:02d}', 'status': 'PAID', 'amount': '1500'}
        for month in range(1, paid_months + 1)
    ]
    return load_subscription_config({
        'type': 'WITH_DISCOUNTS',
        'current_month': current_month,
        'original_monthly_fee': '2000',
        'discounted_monthly_fee': '1500',
        'commitment_period': 6,
        'monthly_records': records,
    }, PAID_AT, TZ)


class LoadSubscriptionTestCase(SimpleTestCase):

    def test_defaults_from_payment_date(self):
        subscription = load_subscription_config({'monthly_fee': '1800'}, PAID_AT, TZ)

        self.assertEqual(subscription['type'], 'STANDARD')
        self.assertEqual(subscription['current_month'], '2024-05')
        self.assertEqual(subscription['monthly_fee'], '1800.00')
        self.assertEqual(subscription['original_monthly_fee'], '1800.00')
        self.assertTrue(subscription['is_first_payment'])
        self.assertEqual(subscription['monthly_records'], [])

    def test_discounted_selection_sets_type(self):
        subscription = load_subscription_config(
            {'original_monthly_fee': '2000', 'discounted_monthly_fee': '1500'},
            PAID_AT, TZ, discounted=True
        )
        self.assertEqual(subscription['type'], 'WITH_DISCOUNTS')

    def test_rejects_malformed_data(self):
        with self.assertRaises(PaymentValidationError):
            load_subscription_config({'type': 'WITH_DISCOUNTS', 'original_monthly_fee': '2000'}, PAID_AT, TZ)
        with self.assertRaises(PaymentValidationError):
            load_subscription_config({'current_month': 'May 2024'}, PAID_AT, TZ)
        with self.assertRaises(PaymentValidationError):
            load_subscription_config({'commitment_period': 'six'}, PAID_AT, TZ)
        with self.assertRaises(PaymentValidationError):
            load_subscription_config({'monthly_records': [{'status': 'PAID'}]}, PAID_AT, TZ)


class AdvanceMonthTestCase(SimpleTestCase):

    def test_discount_kept_within_commitment(self):
        """Fifth of six committed months paid: the discount still applies"""
        updated, fields = advance_month(discounted_subscription(), PAID_AT, Decimal('1500'), 'txn-5', TZ)

        self.assertEqual(paid_month_count(updated), 5)
        self.assertEqual(updated['current_month'], '2024-06')
        self.assertEqual(updated['monthly_fee'], '1500.00')
        self.assertFalse(updated['is_first_payment'])

    def test_discount_ends_with_commitment(self):
        """Sixth month paid: back to the original fee"""
        updated, _ = advance_month(discounted_subscription(), PAID_AT, Decimal('1500'), 'txn-5', TZ)
        updated, _ = advance_month(updated, PAID_AT, Decimal('1500'), 'txn-6', TZ)

        self.assertEqual(paid_month_count(updated), 6)
        self.assertEqual(updated['current_month'], '2024-07')
        self.assertEqual(updated['monthly_fee'], '2000.00')

    def test_schedules_next_month(self):
        _, fields = advance_month(discounted_subscription(), PAID_AT, Decimal('1500'), 'txn-5', TZ,
                                  reminder_hour=9)

        self.assertEqual(fields['status'], 'Paid')
        self.assertEqual(fields['reminder_frequency'], 'MONTHLY')
        self.assertTrue(fields['reminder_enabled'])
        self.assertEqual(fields['next_reminder_date'], datetime(2024, 6, 1, 9, 0, tzinfo=TZ))
        self.assertEqual(fields['next_due_date'], datetime(2024, 6, 1, 0, 0, tzinfo=TZ))

    def test_current_month_record_is_marked_paid(self):
        updated, _ = advance_month(discounted_subscription(), PAID_AT, Decimal('1500'), 'txn-5', TZ)
        may = [r for r in updated['monthly_records'] if r['month'] == '2024-05']

        self.assertEqual(len(may), 1)
        self.assertEqual(may[0]['status'], 'PAID')
        self.assertEqual(may[0]['transaction_id'], 'txn-5')

    def test_month_already_paid(self):
        subscription = discounted_subscription(paid_months=5, current_month='2024-05')
        with self.assertRaises(AlreadyPaid):
            advance_month(subscription, PAID_AT, Decimal('1500'), 'txn-x', TZ)

    def test_december_rolls_into_next_year(self):
        subscription = load_subscription_config(
            {'current_month': '2024-12', 'monthly_fee': '2000'}, PAID_AT, TZ
        )
        updated, fields = advance_month(subscription, PAID_AT, Decimal('2000'), 'txn-12', TZ)

        self.assertEqual(updated['current_month'], '2025-01')
        self.assertEqual(fields['next_reminder_date'], datetime(2025, 1, 1, 9, 0, tzinfo=TZ))

    def test_standard_subscription_never_discounted(self):
        subscription = {'type': 'STANDARD', 'commitment_period': 6,
                        'original_monthly_fee': '2000', 'discounted_monthly_fee': '1500'}
        self.assertEqual(next_month_fee(subscription, 1), Decimal('2000'))

    def test_no_commitment_means_no_discount(self):
        subscription = {'type': 'WITH_DISCOUNTS', 'commitment_period': None,
                        'original_monthly_fee': '2000', 'discounted_monthly_fee': '1500'}
        self.assertEqual(next_month_fee(subscription, 0), Decimal('2000'))
