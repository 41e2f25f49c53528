from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase

from payments.balance import (
    apply_payment, total_fees, max_allowed_amount, FixedOutstanding, NotApplicable,
    outstanding_for,
)
from payments.exceptions import AmountExceedsBalance, ZeroFeeLedger, InvalidAmount
from payments.models import Payment

PAID_AT = datetime(2024, 3, 10, 11, 0, tzinfo=ZoneInfo('Asia/Kolkata'))


def make_ledger(received='0.00', plan_type='ONE_TIME', **overrides):
    fields = {
        'course_fee': Decimal('5000.00'),
        'course_registration_fee': Decimal('1000.00'),
        'student_registration_fee': Decimal('500.00'),
        'received_amount': Decimal(received),
        'plan_type': plan_type,
    }
    fields.update(overrides)
    return Payment(tenant_id='academy_one', **fields)


class TotalFeesTestCase(SimpleTestCase):

    def test_total_includes_unsettled_registration_fees(self):
        self.assertEqual(total_fees(make_ledger()), Decimal('6500.00'))

    def test_settled_registration_fees_are_excluded(self):
        ledger = make_ledger(course_registration_fee_paid=True)
        self.assertEqual(total_fees(ledger), Decimal('5500.00'))

        ledger = make_ledger(course_registration_fee_paid=True, student_registration_fee_paid=True)
        self.assertEqual(total_fees(ledger), Decimal('5000.00'))

    def test_max_allowed_never_negative(self):
        self.assertEqual(max_allowed_amount(make_ledger(received='3000')), Decimal('3500.00'))
        self.assertEqual(max_allowed_amount(make_ledger(received='7000')), Decimal('0.00'))


class ApplyPaymentTestCase(SimpleTestCase):

    def test_partial_payment(self):
        """5000 + 1000 + 500 in fees, 3000 paid"""
        outcome = apply_payment(make_ledger(), 'ONE_TIME', Decimal('3000'))

        self.assertEqual(outcome.received_amount, Decimal('3000.00'))
        self.assertEqual(outcome.outstanding, FixedOutstanding('3500'))
        self.assertEqual(outcome.collection_rate, Decimal('46.15'))
        self.assertFalse(outcome.will_be_fully_paid)
        self.assertEqual(outcome.payment_sub_type, 'Partial Payment')

        fragment = outcome.fragment(PAID_AT)
        self.assertEqual(fragment['status'], 'Pending')
        self.assertEqual(fragment['outstanding_amount'], Decimal('3500.00'))
        self.assertEqual(fragment['last_payment_date'], PAID_AT)

    def test_second_payment_settles_ledger(self):
        outcome = apply_payment(make_ledger(received='3000'), 'ONE_TIME', Decimal('3500'))

        self.assertEqual(outcome.received_amount, Decimal('6500.00'))
        self.assertTrue(outcome.will_be_fully_paid)
        self.assertTrue(outcome.outstanding.is_settled)
        self.assertEqual(outcome.collection_rate, Decimal('100.00'))
        self.assertEqual(outcome.payment_sub_type, 'Full Payment')
        self.assertEqual(outcome.fragment(PAID_AT)['status'], 'Completed')

    def test_amount_too_large(self):
        with self.assertRaises(AmountExceedsBalance) as ctx:
            apply_payment(make_ledger(received='3000'), 'ONE_TIME', Decimal('4000'))

        self.assertEqual(ctx.exception.max_allowed, Decimal('3500.00'))
        self.assertFalse(ctx.exception.already_paid)
        self.assertIn('3500.00', ctx.exception.get_message())

    def test_already_fully_paid(self):
        with self.assertRaises(AmountExceedsBalance) as ctx:
            apply_payment(make_ledger(received='6500'), 'ONE_TIME', Decimal('1'))

        self.assertTrue(ctx.exception.already_paid)
        self.assertIn('already paid', ctx.exception.get_message())

    def test_zero_fee_ledger(self):
        ledger = make_ledger(
            course_fee=Decimal('0'), course_registration_fee=Decimal('0'),
            student_registration_fee=Decimal('0'),
        )
        with self.assertRaises(ZeroFeeLedger):
            apply_payment(ledger, 'ONE_TIME', Decimal('100'))

    def test_zero_fee_applies_to_subscriptions_too(self):
        ledger = make_ledger(
            plan_type='MONTHLY_SUBSCRIPTION', course_fee=Decimal('0'),
            course_registration_fee=Decimal('0'), student_registration_fee=Decimal('0'),
        )
        with self.assertRaises(ZeroFeeLedger):
            apply_payment(ledger, 'MONTHLY_SUBSCRIPTION', Decimal('100'))

    def test_non_positive_amount(self):
        for amount in (Decimal('0'), Decimal('-5')):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidAmount):
                    apply_payment(make_ledger(), 'ONE_TIME', amount)

    def test_emi_sub_type(self):
        outcome = apply_payment(make_ledger(), 'EMI', Decimal('2000'), installment_number=2)
        self.assertEqual(outcome.payment_sub_type, 'EMI 2')

    def test_custom_plan_keeps_requested_sub_type(self):
        outcome = apply_payment(make_ledger(), 'CUSTOM', Decimal('2000'), requested_sub_type='Deposit')
        self.assertEqual(outcome.payment_sub_type, 'Deposit')

    def test_one_time_sub_type(self):
        outcome = apply_payment(make_ledger(), 'ONE_TIME', Decimal('2000'), requested_sub_type='Scholarship Top-up')
        self.assertEqual(outcome.payment_sub_type, 'Scholarship Top-up')

        self.assertEqual(apply_payment(make_ledger(), 'ONE_TIME', Decimal('2000')).payment_sub_type,
                         'Partial Payment')
        self.assertEqual(apply_payment(make_ledger(), 'ONE_TIME', Decimal('6500')).payment_sub_type,
                         'Full Payment')

    def test_ledger_instance_is_not_modified(self):
        ledger = make_ledger()
        apply_payment(ledger, 'ONE_TIME', Decimal('3000'))
        self.assertEqual(ledger.received_amount, Decimal('0.00'))


class SubscriptionBalanceTestCase(SimpleTestCase):

    def test_subscription_has_no_outstanding_balance(self):
        ledger = make_ledger(plan_type='MONTHLY_SUBSCRIPTION', received='6000',
                             collection_rate=Decimal('12.50'))
        outcome = apply_payment(ledger, 'MONTHLY_SUBSCRIPTION', Decimal('2000'))

        self.assertIs(outcome.outstanding, NotApplicable)
        self.assertFalse(outcome.will_be_fully_paid)
        self.assertEqual(outcome.payment_sub_type, '')
        self.assertEqual(outcome.collection_rate, Decimal('12.50'))

        fragment = outcome.fragment(PAID_AT)
        self.assertEqual(fragment['outstanding_amount'], Decimal('0.00'))
        self.assertEqual(fragment['received_amount'], Decimal('8000.00'))
        self.assertNotIn('status', fragment)

    def test_not_applicable_cannot_be_compared(self):
        with self.assertRaises(TypeError):
            NotApplicable < FixedOutstanding('10')
        with self.assertRaises(TypeError):
            FixedOutstanding('10') < NotApplicable
        self.assertNotEqual(NotApplicable, FixedOutstanding('0'))

    def test_outstanding_variants(self):
        self.assertIs(outstanding_for('MONTHLY_SUBSCRIPTION', Decimal('6500'), Decimal('0')), NotApplicable)
        self.assertEqual(outstanding_for('EMI', Decimal('6500'), Decimal('7000')), FixedOutstanding('0'))
        self.assertLess(FixedOutstanding('10'), FixedOutstanding('20'))
