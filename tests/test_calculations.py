"""
Tests for the pure loan calculations.

Loans and repayments are unsaved model instances; nothing here hits the
database.
"""

from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal

from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from apps.core.utils import add_months, quantize_money, to_decimal
from apps.loans import calculations
from apps.loans.models import Loan, LoanRepayment, LoanStatus, RepaymentStatus


def build_loan(principal='12000.00', rate='10.00', term=12, start=date(2024, 1, 1),
               status=LoanStatus.DISBURSED):
    return Loan(
        loan_number='LN-TEST',
        principal=Decimal(principal),
        interest_rate=Decimal(rate),
        term_months=term,
        start_date=start,
        end_date=add_months(start, term),
        status=status,
    )


def build_repayment(amount, paid_on, status=RepaymentStatus.COMPLETED, deleted=False):
    return LoanRepayment(
        amount=Decimal(amount),
        principal_portion=Decimal(amount),
        interest_portion=Decimal('0.00'),
        payment_date=paid_on,
        payment_method='cash',
        status=status,
        deleted_at=datetime(2024, 6, 1, tzinfo=dt_timezone.utc) if deleted else None,
    )


class MoneyHelperTests(SimpleTestCase):

    def test_quantize_rounds_half_up(self):
        self.assertEqual(quantize_money('2.345'), Decimal('2.35'))
        self.assertEqual(quantize_money(Decimal('2.344')), Decimal('2.34'))

    def test_float_goes_through_str(self):
        self.assertEqual(to_decimal(0.1), Decimal('0.1'))

    def test_non_numeric_raises_value_error(self):
        with self.assertRaises(ValueError):
            to_decimal('abc')

    def test_add_months_clamps_to_month_end(self):
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2024, 1, 1), 12), date(2025, 1, 1))


class LoanTermsTests(SimpleTestCase):
    """Simple interest over the full term."""

    def test_total_interest(self):
        self.assertEqual(calculations.total_interest(build_loan()), Decimal('1200.00'))

    def test_total_interest_partial_year(self):
        loan = build_loan(principal='10000', rate='12', term=6)
        self.assertEqual(calculations.total_interest(loan), Decimal('600.00'))

    def test_total_amount_due(self):
        self.assertEqual(calculations.total_amount_due(build_loan()), Decimal('13200.00'))

    def test_monthly_payment(self):
        self.assertEqual(calculations.monthly_payment(build_loan()), Decimal('1100.00'))

    def test_monthly_payment_is_rounded(self):
        loan = build_loan(principal='10000', rate='12', term=6)
        self.assertEqual(calculations.monthly_payment(loan), Decimal('1766.67'))

    def test_zero_interest(self):
        loan = build_loan(principal='10000', rate='0', term=1)
        self.assertEqual(calculations.total_interest(loan), Decimal('0.00'))
        self.assertEqual(calculations.total_amount_due(loan), Decimal('10000.00'))

    def test_repeated_calls_agree(self):
        loan = build_loan()
        self.assertEqual(
            calculations.total_amount_due(loan),
            calculations.total_amount_due(loan),
        )
        self.assertEqual(
            calculations.monthly_payment(loan),
            calculations.monthly_payment(loan),
        )


class RepaymentAggregateTests(SimpleTestCase):

    def setUp(self):
        self.loan = build_loan()
        self.repayments = [
            build_repayment('1100', date(2024, 3, 1)),
            build_repayment('1100', date(2024, 2, 1)),
            build_repayment('500', date(2024, 4, 1), status=RepaymentStatus.PENDING),
            build_repayment('700', date(2024, 4, 2), status=RepaymentStatus.FAILED),
            build_repayment('900', date(2024, 5, 1), deleted=True),
        ]

    def test_only_completed_live_repayments_count(self):
        self.assertEqual(
            calculations.total_completed_paid(self.repayments),
            Decimal('2200.00'),
        )

    def test_remaining_amount(self):
        self.assertEqual(
            calculations.remaining_amount(self.loan, self.repayments),
            Decimal('11000.00'),
        )

    def test_completed_repayments_sorted_by_date(self):
        dates = [r.payment_date for r in calculations.completed_repayments(self.repayments)]
        self.assertEqual(dates, [date(2024, 2, 1), date(2024, 3, 1)])

    def test_payment_history(self):
        history = calculations.payment_history(self.repayments)
        self.assertEqual(len(history), 2)
        self.assertEqual(history[0], {
            'date': date(2024, 2, 1),
            'amount': Decimal('1100.00'),
            'principal_portion': Decimal('1100.00'),
            'interest_portion': Decimal('0.00'),
        })

    def test_is_fully_paid(self):
        loan = build_loan(principal='10000', rate='0', term=1)
        self.assertFalse(calculations.is_fully_paid(
            loan, [build_repayment('9999', date(2024, 1, 15))],
        ))
        self.assertTrue(calculations.is_fully_paid(
            loan, [build_repayment('10000', date(2024, 1, 15))],
        ))


class OverdueTests(SimpleTestCase):

    def test_next_due_date_without_payments(self):
        loan = build_loan()
        self.assertEqual(calculations.next_payment_due_date(loan, []), date(2024, 2, 1))

    def test_next_due_date_follows_last_completed_payment(self):
        loan = build_loan()
        repayments = [
            build_repayment('1100', date(2024, 2, 10)),
            build_repayment('1100', date(2024, 3, 20), status=RepaymentStatus.PENDING),
        ]
        self.assertEqual(
            calculations.next_payment_due_date(loan, repayments),
            date(2024, 3, 10),
        )

    def test_overdue_example(self):
        """Start 2024-01-01, nothing paid, evaluated 2024-03-15."""
        loan = build_loan(start=date(2024, 1, 1))
        today = date(2024, 3, 15)

        self.assertEqual(calculations.next_payment_due_date(loan, []), date(2024, 2, 1))
        self.assertTrue(calculations.is_overdue(loan, [], today=today))
        self.assertEqual(calculations.days_overdue(loan, [], today=today), 43)

    def test_due_today_is_not_overdue(self):
        loan = build_loan(start=date(2024, 1, 1))
        self.assertFalse(calculations.is_overdue(loan, [], today=date(2024, 2, 1)))
        self.assertEqual(calculations.days_overdue(loan, [], today=date(2024, 2, 1)), 0)

    def test_closed_loans_are_never_overdue(self):
        for loan_status in (LoanStatus.PENDING, LoanStatus.APPROVED,
                            LoanStatus.COMPLETED, LoanStatus.REJECTED):
            loan = build_loan(status=loan_status)
            self.assertFalse(calculations.is_overdue(loan, [], today=date(2030, 1, 1)))

    def test_active_loan_is_checked(self):
        loan = build_loan(status=LoanStatus.ACTIVE)
        self.assertTrue(calculations.is_overdue(loan, [], today=date(2024, 2, 2)))


class PaymentScheduleTests(SimpleTestCase):

    def test_length_matches_term(self):
        schedule = calculations.payment_schedule(build_loan())
        self.assertEqual(len(schedule), 12)
        self.assertEqual(len(list(schedule)), 12)

    def test_first_entry(self):
        first = next(iter(calculations.payment_schedule(build_loan())))
        self.assertEqual(first.number, 1)
        self.assertEqual(first.due_date, date(2024, 2, 1))
        self.assertEqual(first.payment_amount, Decimal('1100.00'))
        self.assertEqual(first.interest_portion, Decimal('100.00'))
        self.assertEqual(first.principal_portion, Decimal('1000.00'))
        self.assertEqual(first.remaining_balance, Decimal('11000.00'))

    def test_principal_portions_sum_to_principal(self):
        for principal, rate, term in [('12000', '10', 12), ('10000', '12', 6),
                                      ('250000', '18.5', 36), ('999.99', '7', 7)]:
            loan = build_loan(principal=principal, rate=rate, term=term)
            entries = list(calculations.payment_schedule(loan))
            total = sum((e.principal_portion for e in entries), Decimal('0'))
            self.assertEqual(total, Decimal(principal).quantize(Decimal('0.01')))
            self.assertEqual(entries[-1].remaining_balance, Decimal('0.00'))

    def test_balance_never_negative(self):
        entries = list(calculations.payment_schedule(build_loan(rate='30', term=24)))
        self.assertTrue(all(e.remaining_balance >= 0 for e in entries))
        self.assertTrue(all(e.principal_portion >= 0 for e in entries))

    def test_schedule_is_restartable(self):
        schedule = calculations.payment_schedule(build_loan())
        self.assertEqual(list(schedule), list(schedule))

    def test_due_dates_step_one_month(self):
        loan = build_loan(start=date(2024, 1, 31), term=3)
        dates = [e.due_date for e in calculations.payment_schedule(loan)]
        self.assertEqual(dates, [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)])

    def test_single_month_zero_interest(self):
        loan = build_loan(principal='10000', rate='0', term=1)
        (entry,) = list(calculations.payment_schedule(loan))
        self.assertEqual(entry.principal_portion, Decimal('10000.00'))
        self.assertEqual(entry.interest_portion, Decimal('0.00'))
        self.assertEqual(entry.remaining_balance, Decimal('0.00'))

    def test_entry_lookup(self):
        schedule = calculations.payment_schedule(build_loan())
        self.assertEqual(schedule.entry(1).interest_portion, Decimal('100.00'))
        self.assertIsNone(schedule.entry(13))
        self.assertIsNone(schedule.entry(0))


class LoanSummaryTests(SimpleTestCase):

    def test_summary_fields(self):
        loan = build_loan()
        summary = calculations.loan_summary(
            loan,
            [build_repayment('1100', date(2024, 2, 1))],
            today=date(2024, 3, 15),
        )
        self.assertEqual(summary['total_amount_due'], Decimal('13200.00'))
        self.assertEqual(summary['total_paid'], Decimal('1100.00'))
        self.assertEqual(summary['remaining_amount'], Decimal('12100.00'))
        self.assertEqual(summary['completed_repayments'], 1)
        self.assertEqual(summary['next_payment_due_date'], date(2024, 3, 1))
        self.assertTrue(summary['is_overdue'])
        self.assertEqual(summary['days_overdue'], 14)


class SplitPolicyTests(SimpleTestCase):

    def test_principal_only(self):
        policy = calculations.PrincipalOnlySplit()
        self.assertEqual(
            policy.split(build_loan(), Decimal('1100'), []),
            (Decimal('1100.00'), Decimal('0.00')),
        )

    def test_scheduled_interest_first_installment(self):
        policy = calculations.ScheduledInterestSplit()
        self.assertEqual(
            policy.split(build_loan(), Decimal('1100'), []),
            (Decimal('1000.00'), Decimal('100.00')),
        )

    def test_scheduled_interest_uses_next_unpaid_installment(self):
        policy = calculations.ScheduledInterestSplit()
        paid = [build_repayment('1100', date(2024, 2, 1))]
        principal, interest = policy.split(build_loan(), Decimal('1100'), paid)
        self.assertEqual(interest, Decimal('91.67'))
        self.assertEqual(principal + interest, Decimal('1100.00'))

    def test_scheduled_interest_counts_pending_repayments(self):
        policy = calculations.ScheduledInterestSplit()
        awaiting = [build_repayment('1100', date(2024, 2, 1), status=RepaymentStatus.PENDING)]
        _, interest = policy.split(build_loan(), Decimal('1100'), awaiting)
        self.assertEqual(interest, Decimal('91.67'))

    def test_scheduled_interest_ignores_failed_and_deleted(self):
        policy = calculations.ScheduledInterestSplit()
        ignored = [
            build_repayment('1100', date(2024, 2, 1), status=RepaymentStatus.FAILED),
            build_repayment('1100', date(2024, 2, 1), deleted=True),
        ]
        _, interest = policy.split(build_loan(), Decimal('1100'), ignored)
        self.assertEqual(interest, Decimal('100.00'))

    def test_scheduled_interest_capped_at_amount(self):
        policy = calculations.ScheduledInterestSplit()
        self.assertEqual(
            policy.split(build_loan(), Decimal('40'), []),
            (Decimal('0.00'), Decimal('40.00')),
        )

    def test_scheduled_interest_after_term(self):
        policy = calculations.ScheduledInterestSplit()
        loan = build_loan(term=1)
        paid = [build_repayment('100', date(2024, 2, 1))]
        self.assertEqual(
            policy.split(loan, Decimal('100'), paid),
            (Decimal('100.00'), Decimal('0.00')),
        )

    @override_settings(LOAN_REPAYMENT_SPLIT_POLICY='scheduled_interest')
    def test_policy_from_settings(self):
        self.assertIsInstance(
            calculations.get_split_policy(),
            calculations.ScheduledInterestSplit,
        )

    def test_default_policy(self):
        self.assertIsInstance(
            calculations.get_split_policy(),
            calculations.PrincipalOnlySplit,
        )

    def test_unknown_policy(self):
        with self.assertRaises(ImproperlyConfigured):
            calculations.get_split_policy('compound')
