# academics/models.py

"""
Reference data consumed by the payment ledger: courses, cohorts and
students. Only the fields the fee resolver, invoices and notifications
read are modelled here.
"""

from django.db import models
from django.core.validators import MinValueValidator
from django.core.exceptions import ValidationError
from decimal import Decimal
import logging

from core.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# COURSE MODEL
# =============================================================================

class Course(BaseModel):
    """A course offered by the academy, carrying its list price"""

    COURSE_TYPE_CHOICES = [
        ('Individual', 'Individual'),
        ('Group', 'Group'),
        ('Online', 'Online'),
    ]

    name = models.CharField("Course Name", max_length=200)
    code = models.CharField("Course Code", max_length=30, blank=True)

    price = models.DecimalField(
        "Course Fee",
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    course_type = models.CharField(
        "Course Type",
        max_length=50,
        choices=COURSE_TYPE_CHOICES,
        default='Individual'
    )
    duration_days = models.PositiveIntegerField(
        "Duration (days)",
        null=True,
        blank=True,
        help_text="Used to spread installment due dates over the course"
    )
    is_active = models.BooleanField("Active", default=True)

    class Meta:
        verbose_name = "Course"
        verbose_name_plural = "Courses"
        ordering = ['name']

    def __str__(self):
        return f"{self.code} - {self.name}" if self.code else self.name


# =============================================================================
# COHORT MODEL
# =============================================================================

class Cohort(BaseModel):
    """A batch of students taking a course together"""

    name = models.CharField("Cohort Name", max_length=200)
    course = models.ForeignKey(
        Course,
        verbose_name="Course",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cohorts'
    )
    start_date = models.DateField("Start Date", null=True, blank=True)
    end_date = models.DateField("End Date", null=True, blank=True)

    class Meta:
        verbose_name = "Cohort"
        verbose_name_plural = "Cohorts"
        ordering = ['-start_date', 'name']

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': "End date cannot be before the start date"})


# =============================================================================
# STUDENT MODEL
# =============================================================================

class Student(BaseModel):
    """Core model for student information"""

    # -------------------------------------------------------------------------
    # IDENTIFICATION
    # -------------------------------------------------------------------------

    first_name = models.CharField("First Name", max_length=50)
    last_name = models.CharField("Last Name", max_length=50, blank=True)
    email = models.EmailField("Email", blank=True)
    phone = models.CharField("Phone", max_length=30, blank=True)

    # -------------------------------------------------------------------------
    # ENROLLMENT
    # -------------------------------------------------------------------------

    enrolled_course = models.ForeignKey(
        Course,
        verbose_name="Enrolled Course",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students'
    )
    cohort = models.ForeignKey(
        Cohort,
        verbose_name="Cohort",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students'
    )

    class Meta:
        verbose_name = "Student"
        verbose_name_plural = "Students"
        ordering = ['first_name', 'last_name']

    def __str__(self):
        return self.get_full_name()

    def get_full_name(self):
        """Get student's full name"""
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name
