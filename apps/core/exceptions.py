"""
Custom exceptions and DRF exception handler for the loan back office.

Ledger rule violations are raised from the service layer as APIException
subclasses; the handler below turns them into consistent error responses.
"""

import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class LedgerError(APIException):
    """Base class for every loan ledger error."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Loan ledger error.'
    default_code = 'ledger_error'


# Not found

class OrganizationNotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Organization not found.'
    default_code = 'organization_not_found'


class EmployeeNotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Employee not found.'
    default_code = 'employee_not_found'


class LoanNotFoundError(LedgerError):
    """Raised when a loan does not exist or has been deleted."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Loan not found.'
    default_code = 'loan_not_found'


class RepaymentNotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Repayment not found.'
    default_code = 'repayment_not_found'


class DeficitNotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Loan deficit not found.'
    default_code = 'deficit_not_found'


class ExcessNotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Loan excess not found.'
    default_code = 'excess_not_found'


# Rule violations

class LoanValidationError(LedgerError):
    """Raised when a required value is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid loan data.'
    default_code = 'validation_error'


class InvalidTransitionError(LedgerError):
    """Raised when a lifecycle operation is not allowed from the current status."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Status transition not allowed.'
    default_code = 'invalid_transition'


class InvalidLoanStateError(LedgerError):
    """Raised when a repayment is attempted against a loan that does not accept one."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Loan does not accept repayments in its current status.'
    default_code = 'invalid_loan_state'


class LoanFullyPaidError(LedgerError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Loan is already fully paid.'
    default_code = 'loan_fully_paid'


class HasActiveRepaymentsError(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Cannot delete loan with repayments.'
    default_code = 'has_active_repayments'


class DataIngestionError(Exception):
    """Raised when a bulk import file cannot be read."""

    pass


def custom_exception_handler(exc, context):
    """
    Custom DRF exception handler that returns consistent error responses.

    Handles all DRF exceptions and adds logging for server errors.
    """
    response = exception_handler(exc, context)

    if response is not None:
        error_data = {
            'error': True,
            'status_code': response.status_code,
            'detail': response.data,
        }
        if isinstance(exc, LedgerError):
            error_data['detail'] = exc.detail
            error_data['code'] = exc.default_code
        response.data = error_data
    else:
        # Unhandled exceptions: log and return 500
        logger.exception(
            "Unhandled exception in %s",
            context.get('view', 'unknown'),
            exc_info=exc,
        )
        response = Response(
            {
                'error': True,
                'status_code': 500,
                'detail': 'An unexpected error occurred. Please try again later.',
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return response
