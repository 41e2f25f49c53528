from django.test import SimpleTestCase

from payments.exceptions import InvalidPlanType
from payments.plans import normalize_plan


class NormalizePlanTestCase(SimpleTestCase):

    def test_canonical_plan_types(self):
        expected = {
            'ONE_TIME': 'ONE_TIME',
            'ONE_TIME_WITH_INSTALLMENTS': 'EMI',
            'EMI': 'EMI',
            'MONTHLY_SUBSCRIPTION': 'MONTHLY_SUBSCRIPTION',
            'MONTHLY_WITH_DISCOUNTS': 'MONTHLY_SUBSCRIPTION',
            'CUSTOM': 'CUSTOM',
        }
        for selection, plan_type in expected.items():
            with self.subTest(selection=selection):
                self.assertEqual(normalize_plan(selection).plan_type, plan_type)

    def test_derived_flags(self):
        installments = normalize_plan('ONE_TIME_WITH_INSTALLMENTS')
        self.assertTrue(installments.is_installment_plan)
        self.assertFalse(installments.is_discounted_subscription)

        discounted = normalize_plan('MONTHLY_WITH_DISCOUNTS')
        self.assertTrue(discounted.is_discounted_subscription)
        self.assertTrue(discounted.is_monthly)
        self.assertFalse(discounted.is_installment_plan)

        standard = normalize_plan('MONTHLY_SUBSCRIPTION')
        self.assertFalse(standard.is_discounted_subscription)

    def test_selection_must_match_exactly(self):
        for selection in (' one_time ', 'one_time', 'Emi', 'EMI '):
            with self.subTest(selection=selection):
                with self.assertRaises(InvalidPlanType):
                    normalize_plan(selection)

    def test_default_payment_option(self):
        self.assertEqual(
            normalize_plan('ONE_TIME_WITH_INSTALLMENTS').default_payment_option,
            'One Time With Installments'
        )

    def test_unknown_selection(self):
        for selection in ('WEEKLY', '', None, 42):
            with self.subTest(selection=selection):
                with self.assertRaises(InvalidPlanType):
                    normalize_plan(selection)

    def test_invalid_plan_is_a_bad_request(self):
        with self.assertRaises(InvalidPlanType) as ctx:
            normalize_plan('WEEKLY')
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn('WEEKLY', ctx.exception.get_message())
