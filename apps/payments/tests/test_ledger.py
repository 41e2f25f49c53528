import uuid
from decimal import Decimal
from unittest import mock

from django.test import TestCase

from payments.exceptions import (
    StudentNotFound, LedgerNotFound, DuplicateLedger, StaleLedger, PaymentValidationError,
)
from payments.ledger import (
    get_ledger, get_or_create_ledger, write_ledger, ensure_ledger_fees, settle_registration_fee,
)
from payments.models import Payment
from payments.updates import LedgerUpdate

from .helpers import TENANT, OTHER_TENANT, create_course, create_student


class GetOrCreateLedgerTestCase(TestCase):

    def setUp(self):
        self.student = create_student(course=create_course())

    def test_first_payment_creates_ledger_with_fees(self):
        ledger, created = get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME', 'One Time')

        self.assertTrue(created)
        self.assertEqual(ledger.tenant_id, TENANT)
        self.assertEqual(ledger.course_fee, Decimal('5000.00'))
        self.assertEqual(ledger.course_registration_fee, Decimal('1000.00'))
        self.assertEqual(ledger.student_registration_fee, Decimal('500.00'))
        self.assertEqual(ledger.outstanding_amount, Decimal('6500.00'))
        self.assertEqual(ledger.student_name, 'Asha Rao')
        self.assertEqual(ledger.version, 0)

    def test_existing_ledger_is_returned(self):
        first, _ = get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME')
        second, created = get_or_create_ledger(TENANT, self.student.pk, 'EMI')

        self.assertFalse(created)
        self.assertEqual(second.pk, first.pk)
        self.assertEqual(second.plan_type, 'ONE_TIME')
        self.assertEqual(Payment.objects.for_tenant(TENANT).count(), 1)

    def test_unknown_student(self):
        with self.assertRaises(StudentNotFound):
            get_or_create_ledger(TENANT, uuid.uuid4(), 'ONE_TIME')

    def test_student_of_another_tenant(self):
        with self.assertRaises(StudentNotFound):
            get_or_create_ledger(OTHER_TENANT, self.student.pk, 'ONE_TIME')

    def test_payment_id_must_match_student(self):
        ledger, _ = get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME')
        other = create_student(first_name='Ravi', email='ravi@example.com')

        with self.assertRaises(PaymentValidationError):
            get_or_create_ledger(TENANT, other.pk, 'ONE_TIME', payment_id=ledger.pk)

        found, created = get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME', payment_id=ledger.pk)
        self.assertFalse(created)
        self.assertEqual(found.pk, ledger.pk)

    def test_unknown_payment_id(self):
        with self.assertRaises(LedgerNotFound) as ctx:
            get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME', payment_id=uuid.uuid4())
        self.assertEqual(ctx.exception.status_code, 404)

    def test_concurrent_creation_is_a_conflict(self):
        get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME')

        with mock.patch('payments.ledger.get_ledger', return_value=None):
            with self.assertRaises(DuplicateLedger) as ctx:
                get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME')
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(Payment.objects.for_tenant(TENANT).count(), 1)

    def test_malformed_ids_find_nothing(self):
        self.assertIsNone(get_ledger(TENANT, payment_id='not-a-uuid'))
        self.assertIsNone(get_ledger(TENANT, student_id='not-a-uuid'))


class WriteLedgerTestCase(TestCase):

    def setUp(self):
        self.student = create_student(course=create_course())
        self.ledger, _ = get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME')

    def test_write_bumps_version(self):
        update = LedgerUpdate().with_fragment('balance', {'received_amount': Decimal('1000.00')})
        ledger = write_ledger(self.ledger, update)

        self.assertEqual(ledger.version, 1)
        self.assertEqual(ledger.received_amount, Decimal('1000.00'))

    def test_stale_copy_is_rejected(self):
        stale = Payment.objects.get(pk=self.ledger.pk)
        write_ledger(self.ledger, {'received_amount': Decimal('1000.00')})

        with self.assertRaises(StaleLedger):
            write_ledger(stale, {'received_amount': Decimal('2000.00')})

        stored = Payment.objects.get(pk=self.ledger.pk)
        self.assertEqual(stored.received_amount, Decimal('1000.00'))
        self.assertEqual(stored.version, 1)

    def test_empty_update_is_not_written(self):
        ledger = write_ledger(self.ledger, LedgerUpdate())
        self.assertEqual(ledger.version, 0)


class EnsureLedgerFeesTestCase(TestCase):

    def test_zero_fee_ledger_is_corrected(self):
        student = create_student(course=create_course())
        ledger = Payment.objects.create_for_tenant(TENANT, student=student)

        ledger = ensure_ledger_fees(TENANT, ledger)

        self.assertEqual(ledger.course_fee, Decimal('5000.00'))
        self.assertEqual(ledger.course_registration_fee, Decimal('1000.00'))
        self.assertEqual(ledger.outstanding_amount, Decimal('6500.00'))
        self.assertEqual(ledger.enrolled_course_id, student.enrolled_course_id)
        self.assertEqual(ledger.version, 1)

    def test_ledger_with_fees_is_untouched(self):
        student = create_student(course=create_course())
        ledger, _ = get_or_create_ledger(TENANT, student.pk, 'ONE_TIME')

        self.assertEqual(ensure_ledger_fees(TENANT, ledger).version, 0)


class SettleRegistrationFeeTestCase(TestCase):

    def setUp(self):
        self.student = create_student(course=create_course())
        get_or_create_ledger(TENANT, self.student.pk, 'ONE_TIME')

    def test_settled_fee_leaves_the_total(self):
        ledger = settle_registration_fee(TENANT, self.student.pk, 'course')

        self.assertTrue(ledger.course_registration_fee_paid)
        self.assertEqual(ledger.get_total_fees(), Decimal('5500.00'))
        self.assertEqual(ledger.outstanding_amount, Decimal('5500.00'))

        # Settling twice changes nothing
        again = settle_registration_fee(TENANT, self.student.pk, 'course')
        self.assertEqual(again.version, ledger.version)

    def test_unknown_component(self):
        with self.assertRaises(PaymentValidationError):
            settle_registration_fee(TENANT, self.student.pk, 'exam')

    def test_student_without_ledger(self):
        other = create_student(first_name='Ravi', email='ravi@example.com')
        with self.assertRaises(LedgerNotFound):
            settle_registration_fee(TENANT, other.pk, 'student')
