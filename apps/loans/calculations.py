"""
Pure financial computations over a loan and its repayments.

Nothing here touches the database: every function takes the Loan and the
list of its repayment rows as explicit arguments. Soft-deleted repayments
are filtered out here as well, so callers may pass an unfiltered list.

Interest is simple (not compound) over the whole term:

    total_interest = principal × (rate / 100) × (term_months / 12)
    total_due      = principal + total_interest
    monthly        = total_due / term_months
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Iterator, List, NamedTuple, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from apps.core.utils import ZERO, add_months, quantize_money, to_decimal
from apps.loans.models import Loan, LoanRepayment, LoanStatus, RepaymentStatus


# Loan statuses in which payments are expected and overdue checks apply.
OPEN_STATUSES = frozenset({LoanStatus.DISBURSED, LoanStatus.ACTIVE})

MONTHS_PER_YEAR = Decimal('12')
HUNDRED = Decimal('100')


class ScheduleEntry(NamedTuple):
    number: int
    due_date: date
    payment_amount: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    remaining_balance: Decimal


# Loan terms

def total_interest(loan: Loan) -> Decimal:
    principal = to_decimal(loan.principal)
    rate = to_decimal(loan.interest_rate)
    years = Decimal(loan.term_months) / MONTHS_PER_YEAR
    return quantize_money(principal * (rate / HUNDRED) * years)


def total_amount_due(loan: Loan) -> Decimal:
    return quantize_money(to_decimal(loan.principal) + total_interest(loan))


def monthly_payment(loan: Loan) -> Decimal:
    return quantize_money(total_amount_due(loan) / Decimal(loan.term_months))


# Repayment aggregates

def live_repayments(repayments: Iterable[LoanRepayment]) -> List[LoanRepayment]:
    return [r for r in repayments if r.deleted_at is None]


def completed_repayments(repayments: Iterable[LoanRepayment]) -> List[LoanRepayment]:
    """Completed, non-deleted repayments ordered by payment date ascending."""
    completed = [
        r for r in live_repayments(repayments)
        if r.status == RepaymentStatus.COMPLETED
    ]
    return sorted(completed, key=lambda r: (r.payment_date, r.pk or 0))


def total_completed_paid(repayments: Iterable[LoanRepayment]) -> Decimal:
    total = sum(
        (to_decimal(r.amount) for r in completed_repayments(repayments)),
        ZERO,
    )
    return quantize_money(total)


def remaining_amount(loan: Loan, repayments: Iterable[LoanRepayment]) -> Decimal:
    """Amount still owed. Negative when the loan has been overpaid."""
    return quantize_money(total_amount_due(loan) - total_completed_paid(repayments))


def is_fully_paid(loan: Loan, repayments: Iterable[LoanRepayment]) -> bool:
    return total_completed_paid(repayments) >= total_amount_due(loan)


# Due dates

def _today(today: Optional[date]) -> date:
    return today if today is not None else timezone.localdate()


def next_payment_due_date(loan: Loan, repayments: Iterable[LoanRepayment]) -> date:
    """
    One month after the latest completed repayment, or one month after the
    loan start date when nothing has been paid yet.
    """
    completed = completed_repayments(repayments)
    if completed:
        return add_months(completed[-1].payment_date, 1)
    return add_months(loan.start_date, 1)


def is_overdue(
    loan: Loan,
    repayments: Iterable[LoanRepayment],
    today: Optional[date] = None,
) -> bool:
    if loan.status not in OPEN_STATUSES:
        return False
    return next_payment_due_date(loan, repayments) < _today(today)


def days_overdue(
    loan: Loan,
    repayments: Iterable[LoanRepayment],
    today: Optional[date] = None,
) -> int:
    repayments = list(repayments)
    today = _today(today)
    if not is_overdue(loan, repayments, today=today):
        return 0
    return (today - next_payment_due_date(loan, repayments)).days


# Amortization schedule

class PaymentSchedule:
    """
    Declining-balance projection of a loan over its term.

    Iterating yields one ScheduleEntry per month, computed on the fly from
    the loan terms alone. Every ``iter()`` starts a fresh pass, so the same
    schedule can be walked any number of times.

    The last installment takes whatever principal is left, so the principal
    portions always add up to the loan principal and the final balance is
    zero.
    """

    def __init__(self, loan: Loan):
        self.principal = quantize_money(loan.principal)
        self.monthly_rate = to_decimal(loan.interest_rate) / HUNDRED / MONTHS_PER_YEAR
        self.term_months = loan.term_months
        self.start_date = loan.start_date
        self.payment = monthly_payment(loan)

    def __len__(self) -> int:
        return self.term_months

    def __iter__(self) -> Iterator[ScheduleEntry]:
        balance = self.principal
        for number in range(1, self.term_months + 1):
            interest = quantize_money(balance * self.monthly_rate)
            if number == self.term_months:
                principal = balance
            else:
                principal = min(max(self.payment - interest, ZERO), balance)
            balance = max(balance - principal, ZERO)

            yield ScheduleEntry(
                number=number,
                due_date=add_months(self.start_date, number),
                payment_amount=self.payment,
                principal_portion=principal,
                interest_portion=interest,
                remaining_balance=balance,
            )

    def entry(self, number: int) -> Optional[ScheduleEntry]:
        """Return installment ``number`` (1-indexed), or None past the term."""
        if number < 1 or number > self.term_months:
            return None
        for item in self:
            if item.number == number:
                return item
        return None


def payment_schedule(loan: Loan) -> PaymentSchedule:
    return PaymentSchedule(loan)


def payment_history(repayments: Iterable[LoanRepayment]) -> List[dict]:
    return [
        {
            'date': r.payment_date,
            'amount': quantize_money(r.amount),
            'principal_portion': quantize_money(r.principal_portion),
            'interest_portion': quantize_money(r.interest_portion),
        }
        for r in completed_repayments(repayments)
    ]


def loan_summary(
    loan: Loan,
    repayments: Iterable[LoanRepayment],
    today: Optional[date] = None,
) -> dict:
    """Bundle every derived figure for one loan into a single dict."""
    repayments = live_repayments(repayments)
    today = _today(today)
    return {
        'loan_id': loan.pk,
        'loan_number': loan.loan_number,
        'status': loan.status,
        'principal': quantize_money(loan.principal),
        'interest_rate': to_decimal(loan.interest_rate),
        'term_months': loan.term_months,
        'total_interest': total_interest(loan),
        'total_amount_due': total_amount_due(loan),
        'monthly_payment': monthly_payment(loan),
        'total_paid': total_completed_paid(repayments),
        'remaining_amount': remaining_amount(loan, repayments),
        'completed_repayments': len(completed_repayments(repayments)),
        'next_payment_due_date': next_payment_due_date(loan, repayments),
        'is_overdue': is_overdue(loan, repayments, today=today),
        'days_overdue': days_overdue(loan, repayments, today=today),
    }


# Repayment split policies

class PrincipalOnlySplit:
    """The whole amount reduces principal; no interest is booked."""

    name = 'principal_only'

    def split(
        self,
        loan: Loan,
        amount: Decimal,
        repayments: Iterable[LoanRepayment],
    ) -> Tuple[Decimal, Decimal]:
        return quantize_money(amount), ZERO


class ScheduledInterestSplit:
    """
    Book the scheduled interest of the next unbooked installment first and
    the rest as principal. Every live repayment that has not failed books
    one installment, pending ones included, so the installment number is
    that count plus one. Past the end of the term no interest is due.
    """

    name = 'scheduled_interest'

    def split(
        self,
        loan: Loan,
        amount: Decimal,
        repayments: Iterable[LoanRepayment],
    ) -> Tuple[Decimal, Decimal]:
        amount = quantize_money(amount)
        booked = [
            r for r in live_repayments(repayments)
            if r.status != RepaymentStatus.FAILED
        ]
        installment = len(booked) + 1
        entry = payment_schedule(loan).entry(installment)
        if entry is None:
            return amount, ZERO

        interest = min(entry.interest_portion, amount)
        return amount - interest, interest


SPLIT_POLICIES = {
    PrincipalOnlySplit.name: PrincipalOnlySplit,
    ScheduledInterestSplit.name: ScheduledInterestSplit,
}


def get_split_policy(name: Optional[str] = None):
    """Instantiate the configured repayment split policy."""
    name = name or getattr(settings, 'LOAN_REPAYMENT_SPLIT_POLICY', PrincipalOnlySplit.name)
    try:
        return SPLIT_POLICIES[name]()
    except KeyError:
        raise ImproperlyConfigured(
            f"Unknown LOAN_REPAYMENT_SPLIT_POLICY {name!r}; "
            f"expected one of {sorted(SPLIT_POLICIES)}."
        )
