"""
Loan serializers for the loan back office.

Request serializers check input shapes only; ledger rules live in
``apps.loans.services``.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.loans.models import (
    DeficitStatus,
    ExcessStatus,
    LoanStatus,
    PaymentMethod,
)


class CreateLoanSerializer(serializers.Serializer):
    """Serializer for loan creation request."""

    organization_id = serializers.IntegerField(min_value=1, required=True)
    employee_id = serializers.IntegerField(min_value=1, required=True)
    loan_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    loan_type = serializers.CharField(max_length=100, required=False, default='personal')
    principal = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        min_value=Decimal('0'),
        required=True,
        help_text="Loan principal amount.",
    )
    interest_rate = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal('0'),
        max_value=Decimal('100'),
        required=True,
        help_text="Annual interest rate (%).",
    )
    term_months = serializers.IntegerField(
        min_value=1,
        max_value=360,
        required=True,
        help_text="Loan term in months.",
    )
    start_date = serializers.DateField(required=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    purpose = serializers.CharField(required=False, allow_blank=True, default='')
    collateral = serializers.CharField(required=False, allow_blank=True, default='')
    guarantor_name = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default='',
    )
    guarantor_contact = serializers.CharField(
        max_length=50, required=False, allow_blank=True, default='',
    )
    guarantor_relationship = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default='',
    )
    remarks = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        end_date = attrs.get('end_date')
        if end_date and end_date <= attrs['start_date']:
            raise serializers.ValidationError(
                {'end_date': "End date must be after start date."}
            )
        return attrs


class LoanListFilterSerializer(serializers.Serializer):
    """Query parameters accepted by the loan list."""

    status = serializers.ChoiceField(choices=LoanStatus.choices, required=False)
    loan_type = serializers.CharField(required=False)
    organization_id = serializers.IntegerField(min_value=1, required=False)
    employee_id = serializers.IntegerField(min_value=1, required=False)
    search = serializers.CharField(required=False, allow_blank=True)


class RejectSerializer(serializers.Serializer):
    # Blank reasons reach the ledger, which owns that rule.
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class DisburseSerializer(serializers.Serializer):
    method = serializers.CharField(required=False, allow_blank=True, default='')
    details = serializers.DictField(required=False, default=dict)


class LoanResponseSerializer(serializers.Serializer):
    """Serializer for a loan in list and detail responses."""

    loan_id = serializers.IntegerField(source='pk')
    loan_number = serializers.CharField()
    organization_id = serializers.IntegerField()
    employee_id = serializers.IntegerField()
    loan_type = serializers.CharField()
    principal = serializers.DecimalField(max_digits=15, decimal_places=2)
    interest_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    term_months = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    status = serializers.CharField()
    purpose = serializers.CharField()
    collateral = serializers.CharField()
    guarantor_name = serializers.CharField()
    guarantor_contact = serializers.CharField()
    guarantor_relationship = serializers.CharField()
    approved_by = serializers.CharField()
    approved_at = serializers.DateTimeField(allow_null=True)
    rejected_by = serializers.CharField()
    rejected_at = serializers.DateTimeField(allow_null=True)
    rejection_reason = serializers.CharField()
    disbursed_by = serializers.CharField()
    disbursed_at = serializers.DateTimeField(allow_null=True)
    disbursement_method = serializers.CharField()
    disbursement_details = serializers.DictField()
    remarks = serializers.CharField()
    created_at = serializers.DateTimeField()


class LoanSummarySerializer(serializers.Serializer):
    loan_id = serializers.IntegerField()
    loan_number = serializers.CharField()
    status = serializers.CharField()
    principal = serializers.DecimalField(max_digits=15, decimal_places=2)
    interest_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    term_months = serializers.IntegerField()
    total_interest = serializers.DecimalField(max_digits=15, decimal_places=2)
    total_amount_due = serializers.DecimalField(max_digits=15, decimal_places=2)
    monthly_payment = serializers.DecimalField(max_digits=15, decimal_places=2)
    total_paid = serializers.DecimalField(max_digits=15, decimal_places=2)
    remaining_amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    completed_repayments = serializers.IntegerField()
    next_payment_due_date = serializers.DateField()
    is_overdue = serializers.BooleanField()
    days_overdue = serializers.IntegerField()


class ScheduleEntrySerializer(serializers.Serializer):
    number = serializers.IntegerField()
    due_date = serializers.DateField()
    payment_amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    principal_portion = serializers.DecimalField(max_digits=15, decimal_places=2)
    interest_portion = serializers.DecimalField(max_digits=15, decimal_places=2)
    remaining_balance = serializers.DecimalField(max_digits=15, decimal_places=2)


class HistoryEntrySerializer(serializers.Serializer):
    date = serializers.DateField()
    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    principal_portion = serializers.DecimalField(max_digits=15, decimal_places=2)
    interest_portion = serializers.DecimalField(max_digits=15, decimal_places=2)


# Repayments

class RecordRepaymentSerializer(serializers.Serializer):
    """Serializer for recording a repayment against a loan."""

    amount = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        required=True,
        help_text="Amount paid; must be greater than zero.",
    )
    payment_date = serializers.DateField(required=True)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=True)
    transaction_id = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default='',
    )
    remarks = serializers.CharField(
        max_length=500, required=False, allow_blank=True, default='',
    )


class UpdateRepaymentSerializer(serializers.Serializer):
    """Partial update of a repayment; every field is optional."""

    amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False)
    payment_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    remarks = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No repayment fields to update.")
        return attrs


class RepaymentResponseSerializer(serializers.Serializer):
    repayment_id = serializers.IntegerField(source='pk')
    loan_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    principal_portion = serializers.DecimalField(max_digits=15, decimal_places=2)
    interest_portion = serializers.DecimalField(max_digits=15, decimal_places=2)
    payment_date = serializers.DateField()
    payment_method = serializers.CharField()
    transaction_id = serializers.CharField()
    status = serializers.CharField()
    remarks = serializers.CharField()
    recorded_by = serializers.CharField()
    approved_by = serializers.CharField()
    approved_at = serializers.DateTimeField(allow_null=True)
    rejected_by = serializers.CharField()
    rejected_at = serializers.DateTimeField(allow_null=True)
    rejection_reason = serializers.CharField()


# Deficits and excesses

class RecordDeficitSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0'))
    due_date = serializers.DateField()
    fee_amount = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        min_value=Decimal('0'),
        required=False,
        default=Decimal('0.00'),
    )
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class RecordExcessSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0'))
    payment_date = serializers.DateField()
    fee_amount = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        min_value=Decimal('0'),
        required=False,
        default=Decimal('0.00'),
    )
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class DeficitStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DeficitStatus.choices)
    remarks = serializers.CharField(required=False, allow_blank=True)


class ExcessStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ExcessStatus.choices)
    remarks = serializers.CharField(required=False, allow_blank=True)


class DeficitResponseSerializer(serializers.Serializer):
    deficit_id = serializers.IntegerField(source='pk')
    loan_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    due_date = serializers.DateField()
    fee_amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    status = serializers.CharField()
    remarks = serializers.CharField()


class ExcessResponseSerializer(serializers.Serializer):
    excess_id = serializers.IntegerField(source='pk')
    loan_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    payment_date = serializers.DateField()
    fee_amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    status = serializers.CharField()
    remarks = serializers.CharField()
