"""
Celery tasks for bulk loan import.

Reads a CSV or Excel file with pandas and creates each row as a pending
loan through LoanLedger, so imported loans go through the same validation
as loans created over the API.
"""

import logging
from decimal import Decimal
from pathlib import Path

import pandas as pd
from celery import shared_task
from django.conf import settings
from django.db import IntegrityError

from apps.core.exceptions import DataIngestionError, LedgerError

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_FILE = 'loans.csv'

EXCEL_SUFFIXES = ('.xlsx', '.xls')
IMPORT_SUFFIXES = ('.csv',) + EXCEL_SUFFIXES

REQUIRED_COLUMNS = (
    'organization_id',
    'employee_id',
    'principal',
    'interest_rate',
    'term_months',
    'start_date',
)

OPTIONAL_TEXT_COLUMNS = (
    'loan_number',
    'loan_type',
    'purpose',
    'collateral',
    'guarantor_name',
    'guarantor_contact',
    'guarantor_relationship',
    'remarks',
)

# Column aliases seen in exported spreadsheets.
COLUMN_ALIASES = {
    'amount': 'principal',
    'loan_amount': 'principal',
    'tenure': 'term_months',
}


def read_loan_frame(file_path: Path) -> pd.DataFrame:
    """
    Load an import file into a DataFrame of strings with normalized headers.

    Raises:
        DataIngestionError: If the file type is not csv, xlsx or xls.
    """
    suffix = file_path.suffix.lower()
    if suffix == '.csv':
        df = pd.read_csv(file_path, dtype=str)
    elif suffix in EXCEL_SUFFIXES:
        df = pd.read_excel(file_path, dtype=str)
    else:
        raise DataIngestionError(f"Unsupported import file type: {suffix or file_path.name}")

    # Normalize column names
    columns = [str(col).strip().lower().replace(' ', '_') for col in df.columns]
    df.columns = [COLUMN_ALIASES.get(col, col) for col in columns]
    return df


def _text(row, column: str) -> str:
    value = row.get(column)
    if value is None or pd.isna(value):
        return ''
    return str(value).strip()


def row_to_loan_data(row) -> dict:
    """
    Convert one import row to ``LoanLedger.create_loan`` input.

    Raises:
        ValueError: If a required column is empty or unparseable.
    """
    missing = [col for col in REQUIRED_COLUMNS if not _text(row, col)]
    if missing:
        raise ValueError(f"missing {', '.join(missing)}")

    start_date = pd.to_datetime(_text(row, 'start_date'), errors='coerce')
    if pd.isna(start_date):
        raise ValueError(f"invalid start_date {_text(row, 'start_date')!r}")

    data = {
        'organization_id': int(Decimal(_text(row, 'organization_id'))),
        'employee_id': int(Decimal(_text(row, 'employee_id'))),
        'principal': _text(row, 'principal'),
        'interest_rate': _text(row, 'interest_rate'),
        'term_months': int(Decimal(_text(row, 'term_months'))),
        'start_date': start_date.date(),
    }

    end_date = _text(row, 'end_date')
    if end_date:
        parsed = pd.to_datetime(end_date, errors='coerce')
        if pd.isna(parsed):
            raise ValueError(f"invalid end_date {end_date!r}")
        data['end_date'] = parsed.date()

    for column in OPTIONAL_TEXT_COLUMNS:
        value = _text(row, column)
        if value:
            data[column] = value

    return data


@shared_task(
    bind=True,
    name='core.import_loans',
    max_retries=3,
    default_retry_delay=10,
)
def import_loans(self, file_path=None):
    """
    Import loans from a CSV or Excel file.

    Defaults to ``DATA_DIR/loans.csv``. Rows whose loan_number already exists
    are skipped, so re-running the same file is safe. Rows that fail
    validation are counted as errors and do not stop the import.
    """
    from apps.loans.models import Loan
    from apps.loans.services import LoanLedger

    file_path = Path(file_path) if file_path else Path(settings.DATA_DIR) / DEFAULT_IMPORT_FILE

    if not file_path.exists():
        logger.error("Loan import file not found: %s", file_path)
        return {'status': 'error', 'message': f'File not found: {file_path}'}

    try:
        df = read_loan_frame(file_path)
    except DataIngestionError as exc:
        logger.error("Loan import rejected: %s", exc)
        return {'status': 'error', 'message': str(exc)}

    try:
        logger.info("Starting loan import from %s (%d rows)", file_path, len(df))

        created_count = 0
        skipped_count = 0
        error_count = 0
        error_messages = []

        for index, row in df.iterrows():
            row_number = index + 2  # header is line 1
            try:
                data = row_to_loan_data(row)

                loan_number = data.get('loan_number')
                if loan_number and Loan.objects.filter(loan_number=loan_number).exists():
                    logger.info(
                        "Row %d: loan %s already exists, skipping",
                        row_number,
                        loan_number,
                    )
                    skipped_count += 1
                    continue

                LoanLedger.create_loan(data)
                created_count += 1

            except LedgerError as e:
                logger.warning("Row %d: rejected: %s", row_number, e.detail)
                error_messages.append(f"Row {row_number}: {e.detail}")
                error_count += 1
            except (ValueError, TypeError, ArithmeticError, IntegrityError) as e:
                logger.warning("Row %d: failed to process: %s", row_number, e)
                error_messages.append(f"Row {row_number}: {e}")
                error_count += 1

        result = {
            'status': 'success',
            'total_rows': len(df),
            'created': created_count,
            'skipped': skipped_count,
            'errors': error_count,
            'error_messages': error_messages,
        }
        logger.info(
            "Loan import complete: %d created, %d skipped, %d errors",
            created_count,
            skipped_count,
            error_count,
        )
        return result

    except Exception as exc:
        logger.exception("Loan import failed")
        raise self.retry(exc=exc)
