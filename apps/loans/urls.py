"""
Loan URL configuration.
"""

from django.urls import path

from apps.loans.views import (
    ApproveLoanView,
    ApproveRepaymentView,
    DeficitDetailView,
    DeficitListCreateView,
    DisburseLoanView,
    ExcessDetailView,
    ExcessListCreateView,
    LoanDetailView,
    LoanHistoryView,
    LoanListCreateView,
    LoanScheduleView,
    LoanSummaryView,
    RejectLoanView,
    RejectRepaymentView,
    RepaymentDetailView,
    RepaymentListCreateView,
)

urlpatterns = [
    path('loans', LoanListCreateView.as_view(), name='loan-list'),
    path('loans/<int:loan_id>', LoanDetailView.as_view(), name='loan-detail'),
    path('loans/<int:loan_id>/approve', ApproveLoanView.as_view(), name='loan-approve'),
    path('loans/<int:loan_id>/reject', RejectLoanView.as_view(), name='loan-reject'),
    path('loans/<int:loan_id>/disburse', DisburseLoanView.as_view(), name='loan-disburse'),
    path('loans/<int:loan_id>/schedule', LoanScheduleView.as_view(), name='loan-schedule'),
    path('loans/<int:loan_id>/summary', LoanSummaryView.as_view(), name='loan-summary'),
    path('loans/<int:loan_id>/history', LoanHistoryView.as_view(), name='loan-history'),
    path(
        'loans/<int:loan_id>/repayments',
        RepaymentListCreateView.as_view(),
        name='repayment-list',
    ),
    path(
        'loans/<int:loan_id>/repayments/<int:repayment_id>',
        RepaymentDetailView.as_view(),
        name='repayment-detail',
    ),
    path(
        'loans/<int:loan_id>/repayments/<int:repayment_id>/approve',
        ApproveRepaymentView.as_view(),
        name='repayment-approve',
    ),
    path(
        'loans/<int:loan_id>/repayments/<int:repayment_id>/reject',
        RejectRepaymentView.as_view(),
        name='repayment-reject',
    ),
    path('loans/<int:loan_id>/deficits', DeficitListCreateView.as_view(), name='deficit-list'),
    path('loans/<int:loan_id>/excesses', ExcessListCreateView.as_view(), name='excess-list'),
    path('deficits/<int:deficit_id>', DeficitDetailView.as_view(), name='deficit-detail'),
    path('excesses/<int:excess_id>', ExcessDetailView.as_view(), name='excess-detail'),
]
