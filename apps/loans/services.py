"""
Loan service layer.

LoanLedger owns the loan status machine and repayment accounting; every
derived figure comes from ``apps.loans.calculations``. Deficit and excess
records have their own small services below.

Each mutating operation runs in one transaction and re-reads the loan row
with ``select_for_update()`` before checking its status.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import (
    DeficitNotFoundError,
    EmployeeNotFoundError,
    ExcessNotFoundError,
    HasActiveRepaymentsError,
    InvalidLoanStateError,
    InvalidTransitionError,
    LoanFullyPaidError,
    LoanNotFoundError,
    LoanValidationError,
    OrganizationNotFoundError,
    RepaymentNotFoundError,
)
from apps.core.utils import ZERO, add_months, quantize_money, to_decimal
from apps.loans import calculations
from apps.loans.models import (
    DeficitStatus,
    ExcessStatus,
    Loan,
    LoanDeficit,
    LoanExcess,
    LoanRepayment,
    LoanStatus,
    PaymentMethod,
    RepaymentStatus,
)
from apps.organizations.models import Employee, Organization

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 255
MAX_METHOD_LENGTH = 50
MAX_TERM_MONTHS = 360
MAX_INTEREST_RATE = Decimal('100')

# Loan statuses whose status is re-derived from the repayment totals.
REPAYING_STATUSES = frozenset({
    LoanStatus.DISBURSED,
    LoanStatus.ACTIVE,
    LoanStatus.COMPLETED,
})

REPAYMENT_FIELDS = frozenset({
    'amount',
    'payment_date',
    'payment_method',
    'transaction_id',
    'remarks',
})


def generate_loan_number(prefix: Optional[str] = None) -> str:
    """
    Generate the next loan number for today.

    Format: ``<PREFIX>-YYYYMMDD-NNNN``, e.g. ``LN-20240115-0003``. Must be
    called inside a transaction; the rows sharing today's prefix are locked
    while the counter is chosen.
    """
    prefix = (prefix or settings.LOAN_NUMBER_PREFIX).strip().upper()
    base = f"{prefix}-{timezone.localdate():%Y%m%d}"

    existing = Loan.objects.filter(
        loan_number__startswith=f"{base}-",
    ).select_for_update().values_list('loan_number', flat=True)

    counter = 0
    for loan_number in existing:
        try:
            counter = max(counter, int(loan_number.rsplit('-', 1)[-1]))
        except ValueError:
            continue

    return f"{base}-{counter + 1:04d}"


def _require_actor(actor_id) -> str:
    actor = str(actor_id).strip() if actor_id is not None else ''
    if not actor:
        raise LoanValidationError(detail="An acting user id is required.")
    return actor


def _require_reason(reason) -> str:
    reason = (reason or '').strip()
    if not reason:
        raise LoanValidationError(detail="A rejection reason is required.")
    if len(reason) > MAX_REASON_LENGTH:
        raise LoanValidationError(
            detail=f"Rejection reason must be at most {MAX_REASON_LENGTH} characters."
        )
    return reason


def _money(value, field: str) -> Decimal:
    try:
        amount = to_decimal(value)
        if not amount.is_finite():
            raise ValueError(value)
        return quantize_money(amount)
    except (ValueError, InvalidOperation):
        raise LoanValidationError(detail=f"{field} must be a finite number.")


def _as_date(value, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise LoanValidationError(detail=f"{field} must be a date (YYYY-MM-DD).")


class LoanLedger:
    """Loan status machine, repayment accounting and read-side queries."""

    # Lookups

    @staticmethod
    def get_loan(loan_id: int) -> Loan:
        try:
            return Loan.objects.alive().select_related(
                'organization', 'employee',
            ).get(pk=loan_id)
        except Loan.DoesNotExist:
            raise LoanNotFoundError(detail=f"Loan with ID {loan_id} not found.")

    @staticmethod
    def get_repayment(loan: Loan, repayment_id: int) -> LoanRepayment:
        try:
            return LoanRepayment.objects.alive().select_related('loan').get(
                pk=repayment_id, loan=loan,
            )
        except LoanRepayment.DoesNotExist:
            raise RepaymentNotFoundError(
                detail=f"Repayment with ID {repayment_id} not found on loan {loan.pk}."
            )

    @staticmethod
    def repayments_for(loan: Loan) -> List[LoanRepayment]:
        return list(LoanRepayment.objects.alive().filter(loan_id=loan.pk))

    @staticmethod
    def _lock(loan: Loan) -> Loan:
        try:
            return Loan.objects.alive().select_for_update().get(pk=loan.pk)
        except Loan.DoesNotExist:
            raise LoanNotFoundError(detail=f"Loan with ID {loan.pk} not found.")

    # Loan lifecycle

    @classmethod
    @transaction.atomic
    def create_loan(cls, data: dict) -> Loan:
        """
        Create a new loan in ``pending`` status.

        Args:
            data: organization_id, employee_id, principal, interest_rate,
                term_months, start_date, plus optional loan_number,
                end_date, loan_type, purpose, collateral, guarantor_* and
                remarks.

        Raises:
            OrganizationNotFoundError / EmployeeNotFoundError: Unknown owner.
            LoanValidationError: Any term out of range, a mismatched
                employee, a taken loan number or end date not after start.
        """
        try:
            organization = Organization.objects.get(pk=data.get('organization_id'))
        except Organization.DoesNotExist:
            raise OrganizationNotFoundError(
                detail=f"Organization with ID {data.get('organization_id')} not found."
            )
        try:
            employee = Employee.objects.get(pk=data.get('employee_id'))
        except Employee.DoesNotExist:
            raise EmployeeNotFoundError(
                detail=f"Employee with ID {data.get('employee_id')} not found."
            )
        if employee.organization_id != organization.pk:
            raise LoanValidationError(
                detail=f"Employee {employee.pk} does not belong to organization {organization.pk}."
            )

        principal = _money(data.get('principal'), 'principal')
        if principal < ZERO:
            raise LoanValidationError(detail="principal must not be negative.")

        interest_rate = _money(data.get('interest_rate'), 'interest_rate')
        if interest_rate < ZERO or interest_rate > MAX_INTEREST_RATE:
            raise LoanValidationError(detail="interest_rate must be between 0 and 100.")

        try:
            term_months = int(data.get('term_months'))
        except (TypeError, ValueError):
            raise LoanValidationError(detail="term_months must be a whole number.")
        if term_months < 1 or term_months > MAX_TERM_MONTHS:
            raise LoanValidationError(
                detail=f"term_months must be between 1 and {MAX_TERM_MONTHS}."
            )

        start_date = _as_date(data.get('start_date'), 'start_date')
        if data.get('end_date'):
            end_date = _as_date(data['end_date'], 'end_date')
        else:
            end_date = add_months(start_date, term_months)
        if end_date <= start_date:
            raise LoanValidationError(detail="end_date must be after start_date.")

        loan_number = (data.get('loan_number') or '').strip()
        if loan_number:
            if Loan.objects.filter(loan_number=loan_number).exists():
                raise LoanValidationError(
                    detail=f"Loan number {loan_number} already exists."
                )
        else:
            loan_number = generate_loan_number()

        loan = Loan.objects.create(
            organization=organization,
            employee=employee,
            loan_number=loan_number,
            loan_type=data.get('loan_type') or 'personal',
            principal=principal,
            interest_rate=interest_rate,
            term_months=term_months,
            start_date=start_date,
            end_date=end_date,
            status=LoanStatus.PENDING,
            purpose=data.get('purpose', ''),
            collateral=data.get('collateral', ''),
            guarantor_name=data.get('guarantor_name', ''),
            guarantor_contact=data.get('guarantor_contact', ''),
            guarantor_relationship=data.get('guarantor_relationship', ''),
            remarks=data.get('remarks', ''),
        )

        logger.info(
            "Loan %s (ID: %d) created for employee %d: principal=%s, rate=%s%%, term=%d",
            loan.loan_number,
            loan.pk,
            employee.pk,
            principal,
            interest_rate,
            term_months,
        )

        return loan

    @classmethod
    @transaction.atomic
    def approve(cls, loan: Loan, actor_id) -> Loan:
        actor = _require_actor(actor_id)
        loan = cls._lock(loan)
        if loan.status != LoanStatus.PENDING:
            raise InvalidTransitionError(
                detail=f"Only pending loans can be approved (loan is {loan.status})."
            )

        loan.status = LoanStatus.APPROVED
        loan.approved_by = actor
        loan.approved_at = timezone.now()
        loan.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])

        logger.info("Loan %d approved by %s", loan.pk, actor)
        return loan

    @classmethod
    @transaction.atomic
    def reject(cls, loan: Loan, actor_id, reason: str) -> Loan:
        actor = _require_actor(actor_id)
        loan = cls._lock(loan)
        if loan.status != LoanStatus.PENDING:
            raise InvalidTransitionError(
                detail=f"Only pending loans can be rejected (loan is {loan.status})."
            )
        reason = _require_reason(reason)

        loan.status = LoanStatus.REJECTED
        loan.rejected_by = actor
        loan.rejected_at = timezone.now()
        loan.rejection_reason = reason
        loan.save(update_fields=[
            'status', 'rejected_by', 'rejected_at', 'rejection_reason', 'updated_at',
        ])

        logger.info("Loan %d rejected by %s: %s", loan.pk, actor, reason)
        return loan

    @classmethod
    @transaction.atomic
    def disburse(cls, loan: Loan, actor_id, method: str, details: dict) -> Loan:
        actor = _require_actor(actor_id)
        loan = cls._lock(loan)
        if loan.status != LoanStatus.APPROVED:
            raise InvalidTransitionError(
                detail=f"Only approved loans can be disbursed (loan is {loan.status})."
            )

        method = (method or '').strip()
        if not method:
            raise LoanValidationError(detail="A disbursement method is required.")
        if len(method) > MAX_METHOD_LENGTH:
            raise LoanValidationError(
                detail=f"Disbursement method must be at most {MAX_METHOD_LENGTH} characters."
            )
        if not isinstance(details, dict) or not details:
            raise LoanValidationError(detail="Disbursement details are required.")

        loan.status = LoanStatus.DISBURSED
        loan.disbursed_by = actor
        loan.disbursed_at = timezone.now()
        loan.disbursement_method = method
        loan.disbursement_details = details
        loan.save(update_fields=[
            'status',
            'disbursed_by',
            'disbursed_at',
            'disbursement_method',
            'disbursement_details',
            'updated_at',
        ])

        logger.info("Loan %d disbursed by %s via %s", loan.pk, actor, method)
        return loan

    @classmethod
    @transaction.atomic
    def delete_loan(cls, loan: Loan) -> Loan:
        """Soft-delete a loan. Refused while any repayment row exists."""
        loan = cls._lock(loan)
        if LoanRepayment.objects.alive().filter(loan_id=loan.pk).exists():
            raise HasActiveRepaymentsError(
                detail=f"Loan {loan.pk} has repayments and cannot be deleted."
            )

        loan.soft_delete()
        logger.info("Loan %d deleted", loan.pk)
        return loan

    # Repayments

    @classmethod
    @transaction.atomic
    def record_repayment(
        cls,
        loan: Loan,
        amount,
        payment_date,
        payment_method: str,
        remarks: str = '',
        transaction_id: str = '',
        actor_id=None,
    ) -> LoanRepayment:
        """
        Record a payment against a disbursed or active loan.

        The amount is split by the configured split policy. The repayment is
        completed immediately unless LOAN_REPAYMENT_REQUIRES_APPROVAL is on,
        in which case it waits as pending for ``approve_repayment``.

        Raises:
            LoanValidationError: Non-positive amount or unknown method.
            InvalidLoanStateError: Loan is not disbursed or active.
            LoanFullyPaidError: Completed payments already cover the amount due.
        """
        amount = _money(amount, 'amount')
        if amount <= ZERO:
            raise LoanValidationError(detail="Repayment amount must be greater than zero.")
        if payment_method not in PaymentMethod.values:
            raise LoanValidationError(
                detail=f"payment_method must be one of {', '.join(PaymentMethod.values)}."
            )
        payment_date = _as_date(payment_date, 'payment_date')

        loan = cls._lock(loan)
        if loan.status not in calculations.OPEN_STATUSES:
            raise InvalidLoanStateError(
                detail=f"Loan {loan.pk} is {loan.status}; repayments need a disbursed or active loan."
            )

        repayments = cls.repayments_for(loan)
        if calculations.is_fully_paid(loan, repayments):
            raise LoanFullyPaidError(detail=f"Loan {loan.pk} is already fully paid.")

        principal_portion, interest_portion = calculations.get_split_policy().split(
            loan, amount, repayments,
        )
        if settings.LOAN_REPAYMENT_REQUIRES_APPROVAL:
            repayment_status = RepaymentStatus.PENDING
        else:
            repayment_status = RepaymentStatus.COMPLETED

        repayment = LoanRepayment.objects.create(
            loan=loan,
            amount=amount,
            principal_portion=principal_portion,
            interest_portion=interest_portion,
            payment_date=payment_date,
            payment_method=payment_method,
            transaction_id=transaction_id or '',
            remarks=remarks or '',
            status=repayment_status,
            recorded_by=str(actor_id) if actor_id else '',
        )

        logger.info(
            "Repayment %d of %s recorded on loan %d (%s)",
            repayment.pk,
            amount,
            loan.pk,
            repayment_status,
        )

        cls._sync_status(loan)
        return repayment

    @classmethod
    @transaction.atomic
    def approve_repayment(cls, repayment: LoanRepayment, actor_id) -> LoanRepayment:
        actor = _require_actor(actor_id)
        loan = cls._lock(repayment.loan)
        repayment = cls.get_repayment(loan, repayment.pk)
        if repayment.status != RepaymentStatus.PENDING:
            raise InvalidTransitionError(
                detail=f"Only pending repayments can be approved (repayment is {repayment.status})."
            )

        repayment.status = RepaymentStatus.COMPLETED
        repayment.approved_by = actor
        repayment.approved_at = timezone.now()
        repayment.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])

        logger.info("Repayment %d on loan %d approved by %s", repayment.pk, loan.pk, actor)

        cls._sync_status(loan)
        return repayment

    @classmethod
    @transaction.atomic
    def reject_repayment(cls, repayment: LoanRepayment, actor_id, reason: str) -> LoanRepayment:
        actor = _require_actor(actor_id)
        loan = cls._lock(repayment.loan)
        repayment = cls.get_repayment(loan, repayment.pk)
        if repayment.status != RepaymentStatus.PENDING:
            raise InvalidTransitionError(
                detail=f"Only pending repayments can be rejected (repayment is {repayment.status})."
            )
        reason = _require_reason(reason)

        repayment.status = RepaymentStatus.FAILED
        repayment.rejected_by = actor
        repayment.rejected_at = timezone.now()
        repayment.rejection_reason = reason
        repayment.save(update_fields=[
            'status', 'rejected_by', 'rejected_at', 'rejection_reason', 'updated_at',
        ])

        logger.info("Repayment %d on loan %d rejected by %s", repayment.pk, loan.pk, actor)
        return repayment

    @classmethod
    @transaction.atomic
    def update_repayment(cls, repayment: LoanRepayment, **changes) -> LoanRepayment:
        """
        Edit amount, date, method, transaction id or remarks of a repayment.

        A new amount is split again by the configured policy, and the loan
        status is re-derived afterwards. Changing only the date, method,
        transaction id or remarks keeps the stored principal and interest
        portions as they are.
        """
        unknown = set(changes) - REPAYMENT_FIELDS
        if unknown:
            raise LoanValidationError(
                detail=f"Cannot update repayment fields: {', '.join(sorted(unknown))}."
            )

        loan = cls._lock(repayment.loan)
        repayment = cls.get_repayment(loan, repayment.pk)

        if 'amount' in changes:
            amount = _money(changes['amount'], 'amount')
            if amount <= ZERO:
                raise LoanValidationError(detail="Repayment amount must be greater than zero.")
            others = [r for r in cls.repayments_for(loan) if r.pk != repayment.pk]
            repayment.amount = amount
            repayment.principal_portion, repayment.interest_portion = (
                calculations.get_split_policy().split(loan, amount, others)
            )
        if 'payment_method' in changes:
            if changes['payment_method'] not in PaymentMethod.values:
                raise LoanValidationError(
                    detail=f"payment_method must be one of {', '.join(PaymentMethod.values)}."
                )
            repayment.payment_method = changes['payment_method']
        if 'payment_date' in changes:
            repayment.payment_date = _as_date(changes['payment_date'], 'payment_date')
        if 'transaction_id' in changes:
            repayment.transaction_id = changes['transaction_id'] or ''
        if 'remarks' in changes:
            repayment.remarks = changes['remarks'] or ''

        repayment.save()
        logger.info(
            "Repayment %d on loan %d updated: %s",
            repayment.pk,
            loan.pk,
            ', '.join(sorted(changes)),
        )

        cls._sync_status(loan)
        return repayment

    @classmethod
    @transaction.atomic
    def delete_repayment(cls, repayment: LoanRepayment) -> LoanRepayment:
        loan = cls._lock(repayment.loan)
        repayment = cls.get_repayment(loan, repayment.pk)

        repayment.soft_delete()
        logger.info("Repayment %d on loan %d deleted", repayment.pk, loan.pk)

        cls._sync_status(loan)
        return repayment

    @classmethod
    def _sync_status(cls, loan: Loan) -> Loan:
        """
        Re-derive the status of a repaying loan from its completed total.

        Fully paid loans become completed. A completed loan that is no longer
        covered, or a disbursed loan with a completed payment, becomes
        active. Loans outside disbursed/active/completed are left alone.
        """
        if loan.status not in REPAYING_STATUSES:
            return loan

        repayments = cls.repayments_for(loan)
        if calculations.is_fully_paid(loan, repayments):
            new_status = LoanStatus.COMPLETED
        elif loan.status == LoanStatus.COMPLETED or calculations.completed_repayments(repayments):
            new_status = LoanStatus.ACTIVE
        else:
            new_status = loan.status

        if new_status != loan.status:
            logger.info("Loan %d status %s -> %s", loan.pk, loan.status, new_status)
            loan.status = new_status
            loan.save(update_fields=['status', 'updated_at'])
        return loan

    # Read side

    @staticmethod
    def get_schedule(loan: Loan) -> calculations.PaymentSchedule:
        return calculations.payment_schedule(loan)

    @classmethod
    def get_summary(cls, loan: Loan, today: Optional[date] = None) -> dict:
        return calculations.loan_summary(loan, cls.repayments_for(loan), today=today)

    @classmethod
    def is_overdue(cls, loan: Loan, today: Optional[date] = None) -> bool:
        return calculations.is_overdue(loan, cls.repayments_for(loan), today=today)

    @classmethod
    def get_history(cls, loan: Loan) -> List[dict]:
        return calculations.payment_history(cls.repayments_for(loan))


class _LoanRecordService:
    """Shared create / status / delete flow for deficit and excess records."""

    model = None
    not_found_error = None
    date_field = None
    transitions = {}

    @classmethod
    def get(cls, record_id: int):
        try:
            return cls.model.objects.alive().select_related('loan').get(pk=record_id)
        except cls.model.DoesNotExist:
            raise cls.not_found_error(
                detail=f"{cls.model._meta.verbose_name.capitalize()} with ID {record_id} not found."
            )

    @classmethod
    def list_for(cls, loan: Loan):
        return cls.model.objects.alive().filter(loan_id=loan.pk)

    @classmethod
    @transaction.atomic
    def record(cls, loan: Loan, amount, record_date, fee_amount=ZERO, remarks: str = ''):
        if loan.deleted_at is not None:
            raise LoanNotFoundError(detail=f"Loan with ID {loan.pk} not found.")

        amount = _money(amount, 'amount')
        fee_amount = _money(fee_amount if fee_amount is not None else ZERO, 'fee_amount')
        if amount < ZERO or fee_amount < ZERO:
            raise LoanValidationError(detail="amount and fee_amount must not be negative.")

        record = cls.model.objects.create(
            loan=loan,
            amount=amount,
            fee_amount=fee_amount,
            remarks=remarks or '',
            **{cls.date_field: _as_date(record_date, cls.date_field)},
        )

        logger.info(
            "%s %d of %s recorded on loan %d",
            cls.model.__name__,
            record.pk,
            amount,
            loan.pk,
        )
        return record

    @classmethod
    @transaction.atomic
    def update_status(cls, record, status: str, remarks: Optional[str] = None):
        record = cls.model.objects.alive().select_for_update().filter(pk=record.pk).first()
        if record is None:
            raise cls.not_found_error()

        valid = [choice for choice, _ in cls.model._meta.get_field('status').choices]
        if status not in valid:
            raise LoanValidationError(detail=f"status must be one of {', '.join(valid)}.")
        if status not in cls.transitions.get(record.status, ()):
            raise InvalidTransitionError(
                detail=f"Cannot move {cls.model.__name__} {record.pk} from {record.status} to {status}."
            )

        previous = record.status
        record.status = status
        if remarks is not None:
            record.remarks = remarks
        record.save(update_fields=['status', 'remarks', 'updated_at'])

        logger.info(
            "%s %d status %s -> %s",
            cls.model.__name__,
            record.pk,
            previous,
            status,
        )
        return record

    @classmethod
    @transaction.atomic
    def delete(cls, record):
        record = cls.get(record.pk)
        record.soft_delete()
        logger.info("%s %d deleted", cls.model.__name__, record.pk)
        return record


class DeficitService(_LoanRecordService):
    model = LoanDeficit
    not_found_error = DeficitNotFoundError
    date_field = 'due_date'
    transitions = {
        DeficitStatus.PENDING: (DeficitStatus.PAID, DeficitStatus.WAIVED),
    }


class ExcessService(_LoanRecordService):
    model = LoanExcess
    not_found_error = ExcessNotFoundError
    date_field = 'payment_date'
    transitions = {
        ExcessStatus.PENDING: (ExcessStatus.PROCESSED, ExcessStatus.REFUNDED),
        ExcessStatus.PROCESSED: (ExcessStatus.REFUNDED,),
    }
