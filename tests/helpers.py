"""
Shared builders for the test suite.
"""

import itertools
from datetime import date
from decimal import Decimal

from apps.loans.models import Loan, LoanRepayment, LoanStatus, RepaymentStatus
from apps.organizations.models import Employee, Organization

_loan_numbers = itertools.count(1)


def make_organization(code='ACME', **kwargs):
    defaults = {'name': f'{code} Finance Ltd'}
    defaults.update(kwargs)
    return Organization.objects.create(code=code, **defaults)


def make_employee(organization, employee_code='E001', **kwargs):
    defaults = {
        'first_name': 'Asha',
        'last_name': 'Verma',
        'designation': 'Analyst',
        'monthly_salary': Decimal('50000.00'),
    }
    defaults.update(kwargs)
    return Employee.objects.create(
        organization=organization,
        employee_code=employee_code,
        **defaults,
    )


def make_loan(employee, status=LoanStatus.PENDING, **kwargs):
    """Create a loan row directly, bypassing the ledger's checks."""
    defaults = {
        'loan_number': f'TEST-{next(_loan_numbers):05d}',
        'principal': Decimal('10000.00'),
        'interest_rate': Decimal('0.00'),
        'term_months': 1,
        'start_date': date(2024, 1, 1),
        'end_date': date(2024, 2, 1),
    }
    defaults.update(kwargs)
    return Loan.objects.create(
        organization=employee.organization,
        employee=employee,
        status=status,
        **defaults,
    )


def make_repayment(loan, amount, status=RepaymentStatus.COMPLETED, **kwargs):
    """Create a repayment row directly, without touching the loan status."""
    amount = Decimal(amount)
    defaults = {
        'payment_date': date(2024, 2, 1),
        'payment_method': 'cash',
        'principal_portion': amount,
    }
    defaults.update(kwargs)
    return LoanRepayment.objects.create(
        loan=loan,
        amount=amount,
        status=status,
        **defaults,
    )
