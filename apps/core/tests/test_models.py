from decimal import Decimal
from zoneinfo import ZoneInfo

from django.conf import settings
from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from academics.models import Course
from core.models import PaymentSettings


class PaymentSettingsTestCase(TestCase):

    def test_created_on_first_use_with_defaults(self):
        payment_settings = PaymentSettings.get_for_tenant('academy_one')

        self.assertEqual(payment_settings.course_registration_fee, Decimal('1000'))
        self.assertEqual(payment_settings.student_registration_fee, Decimal('500'))
        self.assertEqual(payment_settings.invoice_prefix, 'INV')
        self.assertEqual(payment_settings.reminder_hour, 9)

    def test_one_row_per_tenant(self):
        first = PaymentSettings.get_for_tenant('academy_one')
        second = PaymentSettings.get_for_tenant('academy_one')
        PaymentSettings.get_for_tenant('academy_two')

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(PaymentSettings.objects.count(), 2)

    @override_settings(PAYMENT_DEFAULTS={'course_registration_fee': '750', 'invoice_prefix': 'ACD'})
    def test_project_defaults_are_configurable(self):
        payment_settings = PaymentSettings.get_for_tenant('academy_three')

        self.assertEqual(payment_settings.course_registration_fee, Decimal('750'))
        self.assertEqual(payment_settings.invoice_prefix, 'ACD')
        self.assertEqual(payment_settings.student_registration_fee, Decimal('500'))

    def test_tenant_is_required(self):
        with self.assertRaises(ValueError):
            PaymentSettings.get_for_tenant('')

    def test_clean_rejects_invalid_values(self):
        payment_settings = PaymentSettings(
            tenant_id='academy_one',
            reminder_hour=25,
            timezone='Mars/Olympus',
        )
        with self.assertRaises(ValidationError) as ctx:
            payment_settings.clean()

        self.assertIn('reminder_hour', ctx.exception.message_dict)
        self.assertIn('timezone', ctx.exception.message_dict)

    def test_invalid_timezone_falls_back_to_project_zone(self):
        payment_settings = PaymentSettings(tenant_id='academy_one', timezone='Mars/Olympus')
        self.assertEqual(payment_settings.get_timezone(), ZoneInfo(settings.TIME_ZONE))


class TenantManagerTestCase(TestCase):

    def test_for_tenant_filters_rows(self):
        Course.objects.create_for_tenant('academy_one', name='Piano', price=Decimal('5000'))
        Course.objects.create_for_tenant('academy_two', name='Guitar', price=Decimal('4000'))

        names = list(Course.objects.for_tenant('academy_one').values_list('name', flat=True))
        self.assertEqual(names, ['Piano'])

    def test_tenant_is_required(self):
        with self.assertRaises(ValueError):
            Course.objects.for_tenant(None)
        with self.assertRaises(ValueError):
            Course.objects.create_for_tenant('', name='Drums')

    def test_timestamps_are_set(self):
        course = Course.objects.create_for_tenant('academy_one', name='Piano')
        self.assertIsNotNone(course.created_at)
        self.assertIsNotNone(course.updated_at)
