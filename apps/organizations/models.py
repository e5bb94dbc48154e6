"""
Organization and employee models for the loan back office.

Loans belong to an employee of an organization. The ledger only reads
these rows; they are managed through their own registration endpoints.
"""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models


class Organization(models.Model):
    """An employer whose staff can take loans."""

    name = models.CharField(
        max_length=255,
        help_text="Registered name of the organization."
    )
    code = models.CharField(
        max_length=50,
        unique=True,
        help_text="Short unique organization code."
    )
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'organizations'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"


class Employee(models.Model):
    """
    An employee of an organization.

    Employee codes are unique within their organization.
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='employees',
        db_index=True,
        help_text="The organization this employee works for."
    )
    employee_code = models.CharField(
        max_length=50,
        help_text="Organization-issued employee code."
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    designation = models.CharField(max_length=100, blank=True)
    monthly_salary = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Gross monthly salary.",
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'employees'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'employee_code'],
                name='uniq_employee_code_per_org',
            ),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name} ({self.employee_code})"

    @property
    def full_name(self):
        """Returns the employee's full name."""
        return f"{self.first_name} {self.last_name}"
