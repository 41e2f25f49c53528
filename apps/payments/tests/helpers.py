from decimal import Decimal

from academics.models import Course, Cohort, Student

TENANT = 'academy_one'
OTHER_TENANT = 'academy_two'


def create_course(tenant_id=TENANT, price=Decimal('5000.00'), name='Piano Foundations', duration_days=90):
    return Course.objects.create_for_tenant(
        tenant_id,
        name=name,
        code='PF-101',
        price=price,
        course_type='Individual',
        duration_days=duration_days,
    )


def create_student(tenant_id=TENANT, course=None, cohort=None, email='asha@example.com',
                   first_name='Asha'):
    return Student.objects.create_for_tenant(
        tenant_id,
        first_name=first_name,
        last_name='Rao',
        email=email,
        enrolled_course=course,
        cohort=cohort,
    )


def create_cohort(course, tenant_id=TENANT):
    return Cohort.objects.create_for_tenant(tenant_id, name='Spring Batch', course=course)


def payment_data(student, **overrides):
    data = {
        'student_id': str(student.pk),
        'amount': '3000',
        'payment_mode': 'UPI',
        'payment_date': '2024-03-10',
        'plan_type': 'ONE_TIME',
        'received_by': 'Front Desk',
    }
    data.update(overrides)
    return data
