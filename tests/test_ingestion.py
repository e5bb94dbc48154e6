"""
Tests for the bulk loan import Celery task.

Uses task.apply() with CELERY_ALWAYS_EAGER to run tasks synchronously
in the test environment.
"""

import os
import tempfile

import pandas as pd
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.core.tasks import import_loans
from apps.loans.models import Loan, LoanStatus
from tests.helpers import make_employee, make_organization


@override_settings(
    CELERY_TASK_ALWAYS_EAGER=True,
    CELERY_TASK_EAGER_PROPAGATES=True,
)
class LoanImportTests(TestCase):
    """Test cases for the loan import task."""

    def setUp(self):
        temp = tempfile.TemporaryDirectory()
        self.addCleanup(temp.cleanup)
        self.temp_dir = temp.name

        self.organization = make_organization()
        self.employee = make_employee(self.organization)

        self.rows = {
            'Organization ID': [self.organization.pk, self.organization.pk,
                                self.organization.pk, self.organization.pk],
            'Employee ID': [self.employee.pk, self.employee.pk, 9999, self.employee.pk],
            'Loan Number': ['IMP-001', 'IMP-002', 'IMP-003', 'IMP-004'],
            'Principal': [100000, 50000, 20000, None],
            'Interest Rate': [10.0, 12.5, 9.0, 9.0],
            'Term Months': [12, 24, 6, 6],
            'Start Date': ['2024-01-01', '2024-02-15', '2024-03-01', '2024-03-01'],
            'Purpose': ['Medical', 'Education', 'Travel', 'Travel'],
        }

    def write_csv(self, rows, name='loans.csv'):
        path = os.path.join(self.temp_dir, name)
        pd.DataFrame(rows).to_csv(path, index=False)
        return path

    def test_import_csv(self):
        """Valid rows are created; unknown employee and missing principal are errors."""
        path = self.write_csv(self.rows)

        result = import_loans.apply(kwargs={'file_path': path}).get()

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['total_rows'], 4)
        self.assertEqual(result['created'], 2)
        self.assertEqual(result['skipped'], 0)
        self.assertEqual(result['errors'], 2)
        self.assertEqual(len(result['error_messages']), 2)

        loan = Loan.objects.get(loan_number='IMP-002')
        self.assertEqual(loan.status, LoanStatus.PENDING)
        self.assertEqual(str(loan.principal), '50000.00')
        self.assertEqual(str(loan.interest_rate), '12.50')
        self.assertEqual(loan.term_months, 24)
        self.assertEqual(loan.end_date.isoformat(), '2026-02-15')
        self.assertEqual(loan.purpose, 'Education')

    def test_import_idempotent(self):
        """Running the import twice skips loans that already exist."""
        path = self.write_csv(self.rows)

        import_loans.apply(kwargs={'file_path': path}).get()
        result = import_loans.apply(kwargs={'file_path': path}).get()

        self.assertEqual(Loan.objects.count(), 2)
        self.assertEqual(result['created'], 0)
        self.assertEqual(result['skipped'], 2)
        self.assertEqual(result['errors'], 2)

    def test_default_file_from_data_dir(self):
        self.write_csv(self.rows)
        with self.settings(DATA_DIR=self.temp_dir):
            result = import_loans.apply().get()
        self.assertEqual(result['created'], 2)

    def test_column_aliases_and_generated_numbers(self):
        path = self.write_csv({
            'organization_id': [self.organization.pk],
            'employee_id': [self.employee.pk],
            'amount': [15000],
            'interest_rate': [0],
            'tenure': [3],
            'start_date': ['2024-05-01'],
        })

        result = import_loans.apply(kwargs={'file_path': path}).get()

        self.assertEqual(result['created'], 1)
        loan = Loan.objects.get()
        self.assertTrue(loan.loan_number.startswith('LN-'))
        self.assertEqual(loan.term_months, 3)

    def test_import_excel(self):
        path = os.path.join(self.temp_dir, 'loans.xlsx')
        rows = {key: values[:2] for key, values in self.rows.items()}
        pd.DataFrame(rows).to_excel(path, index=False)

        result = import_loans.apply(kwargs={'file_path': path}).get()

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['created'], 2)

    def test_invalid_start_date(self):
        path = self.write_csv({**{k: v[:1] for k, v in self.rows.items()},
                               'Start Date': ['not-a-date']})
        result = import_loans.apply(kwargs={'file_path': path}).get()
        self.assertEqual(result['errors'], 1)
        self.assertEqual(Loan.objects.count(), 0)

    def test_missing_file(self):
        """Test graceful handling of missing file."""
        result = import_loans.apply(kwargs={'file_path': '/nonexistent/loans.csv'}).get()
        self.assertEqual(result['status'], 'error')

    def test_unsupported_file_type(self):
        path = os.path.join(self.temp_dir, 'loans.json')
        with open(path, 'w') as fh:
            fh.write('[]')
        result = import_loans.apply(kwargs={'file_path': path}).get()
        self.assertEqual(result['status'], 'error')
        self.assertIn('Unsupported', result['message'])


@override_settings(API_KEYS=['test-key'])
class TriggerImportViewTests(TestCase):
    """Test POST /api/import-loans."""

    def setUp(self):
        self.client = APIClient()
        self.header = {'HTTP_X_API_KEY': 'test-key'}

        temp = tempfile.TemporaryDirectory()
        self.addCleanup(temp.cleanup)
        self.data_dir = temp.name

        organization = make_organization()
        employee = make_employee(organization)
        self.rows = {
            'organization_id': [organization.pk],
            'employee_id': [employee.pk],
            'principal': [20000],
            'interest_rate': [10],
            'term_months': [6],
            'start_date': ['2024-01-01'],
        }

    def trigger(self, payload):
        with self.settings(DATA_DIR=self.data_dir):
            return self.client.post('/api/import-loans', payload, format='json', **self.header)

    def test_trigger_returns_task_id(self):
        response = self.trigger({'file_name': 'missing.csv'})
        self.assertEqual(response.status_code, 202)
        self.assertIn('task_id', response.json())

    def test_imports_named_file_from_data_dir(self):
        pd.DataFrame(self.rows).to_csv(os.path.join(self.data_dir, 'march.csv'), index=False)
        response = self.trigger({'file_name': 'march.csv'})
        self.assertEqual(response.status_code, 202)
        self.assertEqual(Loan.objects.count(), 1)

    def test_defaults_to_loans_csv(self):
        pd.DataFrame(self.rows).to_csv(os.path.join(self.data_dir, 'loans.csv'), index=False)
        response = self.trigger({})
        self.assertEqual(response.status_code, 202)
        self.assertEqual(Loan.objects.count(), 1)

    def test_paths_outside_data_dir_rejected(self):
        outside = tempfile.TemporaryDirectory()
        self.addCleanup(outside.cleanup)
        outside_file = os.path.join(outside.name, 'loans.csv')
        pd.DataFrame(self.rows).to_csv(outside_file, index=False)

        for file_name in (outside_file, '../loans.csv', 'sub/loans.csv', '..', 'loans.json'):
            with self.subTest(file_name=file_name):
                response = self.trigger({'file_name': file_name})
                self.assertEqual(response.status_code, 400)
        self.assertEqual(Loan.objects.count(), 0)
