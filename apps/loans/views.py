"""
Loan views for the loan back office.

Views are thin; all business logic is in the service layer. The acting
user's id comes from ``request.actor_id`` (see ActorMiddleware) and is passed
explicitly into every ledger call.
"""

import logging

from django.db.models import Q
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.loans.models import Loan
from apps.loans.serializers import (
    CreateLoanSerializer,
    DeficitResponseSerializer,
    DeficitStatusSerializer,
    DisburseSerializer,
    ExcessResponseSerializer,
    ExcessStatusSerializer,
    HistoryEntrySerializer,
    LoanListFilterSerializer,
    LoanResponseSerializer,
    LoanSummarySerializer,
    RecordDeficitSerializer,
    RecordExcessSerializer,
    RecordRepaymentSerializer,
    RejectSerializer,
    RepaymentResponseSerializer,
    ScheduleEntrySerializer,
    UpdateRepaymentSerializer,
)
from apps.loans.services import DeficitService, ExcessService, LoanLedger

logger = logging.getLogger(__name__)


def _actor(request):
    return getattr(request, 'actor_id', None)


class LoanPagination(PageNumberPagination):
    """Pagination for the loan list."""
    page_size = 10
    page_size_query_param = 'page_size'
    max_page_size = 100


class LoanListCreateView(APIView):
    """
    GET  /api/loans   List loans, filtered and paginated.
    POST /api/loans   Create a pending loan.
    """

    def get(self, request):
        filters = LoanListFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        params = filters.validated_data

        loans = Loan.objects.alive().select_related('employee')
        if params.get('status'):
            loans = loans.filter(status=params['status'])
        if params.get('loan_type'):
            loans = loans.filter(loan_type=params['loan_type'])
        if params.get('organization_id'):
            loans = loans.filter(organization_id=params['organization_id'])
        if params.get('employee_id'):
            loans = loans.filter(employee_id=params['employee_id'])
        if params.get('search'):
            term = params['search']
            loans = loans.filter(
                Q(loan_number__icontains=term)
                | Q(purpose__icontains=term)
                | Q(employee__first_name__icontains=term)
                | Q(employee__last_name__icontains=term)
                | Q(employee__employee_code__icontains=term)
            )
        loans = loans.order_by('-created_at', '-id')

        paginator = LoanPagination()
        page = paginator.paginate_queryset(loans, request)
        return paginator.get_paginated_response(
            LoanResponseSerializer(page, many=True).data
        )

    def post(self, request):
        serializer = CreateLoanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        loan = LoanLedger.create_loan(serializer.validated_data)

        return Response(
            LoanResponseSerializer(loan).data,
            status=status.HTTP_201_CREATED,
        )


class LoanDetailView(APIView):
    """
    GET    /api/loans/<loan_id>   Loan with its derived summary.
    DELETE /api/loans/<loan_id>   Soft-delete a loan without repayments.
    """

    def get(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        data = LoanResponseSerializer(loan).data
        data['summary'] = LoanSummarySerializer(LoanLedger.get_summary(loan)).data
        return Response(data, status=status.HTTP_200_OK)

    def delete(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        LoanLedger.delete_loan(loan)
        logger.info("Loan %d deleted by %s", loan.pk, _actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class ApproveLoanView(APIView):
    """POST /api/loans/<loan_id>/approve"""

    def post(self, request, loan_id):
        loan = LoanLedger.approve(LoanLedger.get_loan(loan_id), _actor(request))
        return Response(LoanResponseSerializer(loan).data, status=status.HTTP_200_OK)


class RejectLoanView(APIView):
    """POST /api/loans/<loan_id>/reject"""

    def post(self, request, loan_id):
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        loan = LoanLedger.reject(
            LoanLedger.get_loan(loan_id),
            _actor(request),
            serializer.validated_data['reason'],
        )
        return Response(LoanResponseSerializer(loan).data, status=status.HTTP_200_OK)


class DisburseLoanView(APIView):
    """POST /api/loans/<loan_id>/disburse"""

    def post(self, request, loan_id):
        serializer = DisburseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        loan = LoanLedger.disburse(
            LoanLedger.get_loan(loan_id),
            _actor(request),
            serializer.validated_data['method'],
            serializer.validated_data['details'],
        )
        return Response(LoanResponseSerializer(loan).data, status=status.HTTP_200_OK)


class LoanScheduleView(APIView):
    """GET /api/loans/<loan_id>/schedule"""

    def get(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        schedule = LoanLedger.get_schedule(loan)
        return Response(
            {
                'loan_id': loan.pk,
                'monthly_payment': str(schedule.payment),
                'schedule': ScheduleEntrySerializer(schedule, many=True).data,
            },
            status=status.HTTP_200_OK,
        )


class LoanSummaryView(APIView):
    """GET /api/loans/<loan_id>/summary"""

    def get(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        return Response(
            LoanSummarySerializer(LoanLedger.get_summary(loan)).data,
            status=status.HTTP_200_OK,
        )


class LoanHistoryView(APIView):
    """GET /api/loans/<loan_id>/history"""

    def get(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        return Response(
            {
                'loan_id': loan.pk,
                'history': HistoryEntrySerializer(LoanLedger.get_history(loan), many=True).data,
            },
            status=status.HTTP_200_OK,
        )


# Repayments

class RepaymentListCreateView(APIView):
    """
    GET  /api/loans/<loan_id>/repayments
    POST /api/loans/<loan_id>/repayments
    """

    def get(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        repayments = sorted(
            LoanLedger.repayments_for(loan),
            key=lambda r: (r.payment_date, r.pk),
        )
        return Response(
            RepaymentResponseSerializer(repayments, many=True).data,
            status=status.HTTP_200_OK,
        )

    def post(self, request, loan_id):
        serializer = RecordRepaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        repayment = LoanLedger.record_repayment(
            LoanLedger.get_loan(loan_id),
            actor_id=_actor(request),
            **serializer.validated_data,
        )
        return Response(
            RepaymentResponseSerializer(repayment).data,
            status=status.HTTP_201_CREATED,
        )


class RepaymentDetailView(APIView):
    """
    GET    /api/loans/<loan_id>/repayments/<repayment_id>
    PATCH  /api/loans/<loan_id>/repayments/<repayment_id>
    DELETE /api/loans/<loan_id>/repayments/<repayment_id>
    """

    def get(self, request, loan_id, repayment_id):
        repayment = LoanLedger.get_repayment(LoanLedger.get_loan(loan_id), repayment_id)
        return Response(RepaymentResponseSerializer(repayment).data, status=status.HTTP_200_OK)

    def patch(self, request, loan_id, repayment_id):
        serializer = UpdateRepaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        repayment = LoanLedger.get_repayment(LoanLedger.get_loan(loan_id), repayment_id)
        repayment = LoanLedger.update_repayment(repayment, **serializer.validated_data)
        return Response(RepaymentResponseSerializer(repayment).data, status=status.HTTP_200_OK)

    def delete(self, request, loan_id, repayment_id):
        repayment = LoanLedger.get_repayment(LoanLedger.get_loan(loan_id), repayment_id)
        LoanLedger.delete_repayment(repayment)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ApproveRepaymentView(APIView):
    """POST /api/loans/<loan_id>/repayments/<repayment_id>/approve"""

    def post(self, request, loan_id, repayment_id):
        repayment = LoanLedger.get_repayment(LoanLedger.get_loan(loan_id), repayment_id)
        repayment = LoanLedger.approve_repayment(repayment, _actor(request))
        return Response(RepaymentResponseSerializer(repayment).data, status=status.HTTP_200_OK)


class RejectRepaymentView(APIView):
    """POST /api/loans/<loan_id>/repayments/<repayment_id>/reject"""

    def post(self, request, loan_id, repayment_id):
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        repayment = LoanLedger.get_repayment(LoanLedger.get_loan(loan_id), repayment_id)
        repayment = LoanLedger.reject_repayment(
            repayment,
            _actor(request),
            serializer.validated_data['reason'],
        )
        return Response(RepaymentResponseSerializer(repayment).data, status=status.HTTP_200_OK)


# Deficits and excesses

class DeficitListCreateView(APIView):
    """
    GET  /api/loans/<loan_id>/deficits
    POST /api/loans/<loan_id>/deficits
    """

    def get(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        return Response(
            DeficitResponseSerializer(DeficitService.list_for(loan), many=True).data,
            status=status.HTTP_200_OK,
        )

    def post(self, request, loan_id):
        serializer = RecordDeficitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        deficit = DeficitService.record(
            LoanLedger.get_loan(loan_id),
            data['amount'],
            data['due_date'],
            fee_amount=data['fee_amount'],
            remarks=data['remarks'],
        )
        return Response(
            DeficitResponseSerializer(deficit).data,
            status=status.HTTP_201_CREATED,
        )


class DeficitDetailView(APIView):
    """
    PATCH  /api/deficits/<deficit_id>   Change status.
    DELETE /api/deficits/<deficit_id>
    """

    def patch(self, request, deficit_id):
        serializer = DeficitStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deficit = DeficitService.update_status(
            DeficitService.get(deficit_id),
            serializer.validated_data['status'],
            remarks=serializer.validated_data.get('remarks'),
        )
        return Response(DeficitResponseSerializer(deficit).data, status=status.HTTP_200_OK)

    def delete(self, request, deficit_id):
        DeficitService.delete(DeficitService.get(deficit_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


class ExcessListCreateView(APIView):
    """
    GET  /api/loans/<loan_id>/excesses
    POST /api/loans/<loan_id>/excesses
    """

    def get(self, request, loan_id):
        loan = LoanLedger.get_loan(loan_id)
        return Response(
            ExcessResponseSerializer(ExcessService.list_for(loan), many=True).data,
            status=status.HTTP_200_OK,
        )

    def post(self, request, loan_id):
        serializer = RecordExcessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        excess = ExcessService.record(
            LoanLedger.get_loan(loan_id),
            data['amount'],
            data['payment_date'],
            fee_amount=data['fee_amount'],
            remarks=data['remarks'],
        )
        return Response(
            ExcessResponseSerializer(excess).data,
            status=status.HTTP_201_CREATED,
        )


class ExcessDetailView(APIView):
    """
    PATCH  /api/excesses/<excess_id>   Change status.
    DELETE /api/excesses/<excess_id>
    """

    def patch(self, request, excess_id):
        serializer = ExcessStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        excess = ExcessService.update_status(
            ExcessService.get(excess_id),
            serializer.validated_data['status'],
            remarks=serializer.validated_data.get('remarks'),
        )
        return Response(ExcessResponseSerializer(excess).data, status=status.HTTP_200_OK)

    def delete(self, request, excess_id):
        ExcessService.delete(ExcessService.get(excess_id))
        return Response(status=status.HTTP_204_NO_CONTENT)
