from copy import deepcopy
from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase

from core.utils import parse_datetime_value
from payments.exceptions import UnknownInstallment, AlreadyPaid, InvalidInstallmentSchedule
from payments.installments import (
    build_installment_schedule, load_installments_config, validate_installment_schedule,
    get_schedule_errors, mark_installment_paid, next_unpaid_installment, paid_installment_count,
)

TZ = ZoneInfo('Asia/Kolkata')
START = datetime(2024, 1, 1, 10, 0, tzinfo=TZ)
END = START + timedelta(days=90)


def three_installments():
    return build_installment_schedule(START, END, Decimal('6500.00'))


class BuildScheduleTestCase(SimpleTestCase):

    def test_equal_periods_and_amounts(self):
        config = three_installments()
        installments = config['installments']

        self.assertEqual(config['installment_count'], 3)
        self.assertEqual(config['course_duration'], 90)
        self.assertEqual([i['amount'] for i in installments], ['2166.66', '2166.66', '2166.68'])
        self.assertEqual([i['stage'] for i in installments], ['first', 'middle', 'last'])
        self.assertEqual(
            [parse_datetime_value(i['due_date']) for i in installments],
            [START + timedelta(days=30), START + timedelta(days=60), START + timedelta(days=90)]
        )

    def test_reminder_days_before_due_date(self):
        config = build_installment_schedule(START, END, Decimal('6000'), reminder_days_before=3)
        first = config['installments'][0]
        self.assertEqual(
            parse_datetime_value(first['due_date']) - parse_datetime_value(first['reminder_date']),
            timedelta(days=3)
        )

    def test_generated_schedule_is_valid(self):
        self.assertEqual(get_schedule_errors(three_installments()), [])

    def test_rejects_impossible_schedules(self):
        with self.assertRaises(InvalidInstallmentSchedule):
            build_installment_schedule(START, END, Decimal('6500'), installment_count=1)
        with self.assertRaises(InvalidInstallmentSchedule):
            build_installment_schedule(END, START, Decimal('6500'))
        with self.assertRaises(InvalidInstallmentSchedule):
            build_installment_schedule(START, END, Decimal('0'))
        with self.assertRaises(InvalidInstallmentSchedule):
            build_installment_schedule(START, START + timedelta(days=2), Decimal('6500'))


class LoadScheduleTestCase(SimpleTestCase):

    def test_load_normalizes_client_data(self):
        data = {
            'installment_count': '2',
            'course_duration': {'duration_in_days': 60},
            'installments': [
                {'amount': 3000, 'due_date': '2024-02-01', 'reminder_date': '2024-01-30'},
                {'amount': '3500', 'due_date': '2024-03-01', 'reminder_date': '2024-02-28'},
            ],
        }
        config = load_installments_config(data)

        self.assertEqual(config['installment_count'], 2)
        self.assertEqual(config['course_duration'], 60)
        self.assertEqual(config['total_amount'], '6500.00')
        self.assertEqual([i['installment_number'] for i in config['installments']], [1, 2])
        self.assertEqual([i['status'] for i in config['installments']], ['UNPAID', 'UNPAID'])
        self.assertEqual(validate_installment_schedule(config), config)

    def test_load_rejects_malformed_data(self):
        with self.assertRaises(InvalidInstallmentSchedule):
            load_installments_config({'installments': 'three'})
        with self.assertRaises(InvalidInstallmentSchedule):
            load_installments_config({'installments': [{'amount': 10, 'due_date': 'soon', 'reminder_date': 'now'}]})
        with self.assertRaises(InvalidInstallmentSchedule):
            load_installments_config({'installment_count': 'x', 'installments': []})

    def test_validation_collects_every_problem(self):
        config = three_installments()
        config['total_amount'] = '7000.00'
        config['installments'][1]['installment_number'] = 1
        config['installments'][2]['reminder_date'] = config['installments'][2]['due_date']

        errors = get_schedule_errors(config)
        self.assertEqual(len(errors), 3)
        with self.assertRaises(InvalidInstallmentSchedule):
            validate_installment_schedule(config)


class MarkInstallmentPaidTestCase(SimpleTestCase):

    def setUp(self):
        config = three_installments()
        self.paid_at = START + timedelta(days=29)
        self.config, _ = mark_installment_paid(config, 1, self.paid_at, Decimal('2166.66'), 'txn-1')

    def test_paying_installment_advances_next_due_date(self):
        """Installment 1 already paid; paying 2 moves the due date to 3"""
        updated, fields = mark_installment_paid(
            self.config, 2, self.paid_at + timedelta(days=30), Decimal('2166.66'), 'txn-2'
        )

        second = updated['installments'][1]
        self.assertEqual(second['status'], 'PAID')
        self.assertEqual(second['transaction_id'], 'txn-2')
        self.assertEqual(second['paid_amount'], '2166.66')

        third = updated['installments'][2]
        self.assertEqual(fields['next_due_date'], parse_datetime_value(third['due_date']))
        self.assertEqual(fields['next_reminder_date'], parse_datetime_value(third['reminder_date']))
        self.assertTrue(fields['reminder_enabled'])
        self.assertEqual(fields['installments_config'], updated)
        self.assertEqual(paid_installment_count(updated), 2)

    def test_replay_is_rejected(self):
        updated, fields = mark_installment_paid(self.config, 2, self.paid_at, Decimal('2166.66'), 'txn-2')
        snapshot = deepcopy(updated)

        with self.assertRaises(AlreadyPaid):
            mark_installment_paid(updated, 2, self.paid_at, Decimal('2166.66'), 'txn-2')
        self.assertEqual(updated, snapshot)

    def test_unknown_installment(self):
        with self.assertRaises(UnknownInstallment) as ctx:
            mark_installment_paid(self.config, 7, self.paid_at, Decimal('100'), 'txn-7')
        self.assertEqual(ctx.exception.installment_number, 7)

    def test_last_installment_clears_reminders(self):
        config, _ = mark_installment_paid(self.config, 2, self.paid_at, Decimal('2166.66'), 'txn-2')
        config, fields = mark_installment_paid(config, 3, self.paid_at, Decimal('2166.68'), 'txn-3')

        self.assertIsNone(fields['next_due_date'])
        self.assertIsNone(fields['next_reminder_date'])
        self.assertFalse(fields['reminder_enabled'])
        self.assertIsNone(next_unpaid_installment(config))

    def test_input_config_is_not_modified(self):
        before = deepcopy(self.config)
        mark_installment_paid(self.config, 2, self.paid_at, Decimal('2166.66'), 'txn-2')
        self.assertEqual(self.config, before)
