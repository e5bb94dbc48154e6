"""
Loan ledger models: loans, repayments, deficits and excesses.

Soft deletion is an explicit ``deleted_at`` column. Managers do not hide
deleted rows; read paths call ``.alive()`` on the queryset.
"""

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class LoanStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    DISBURSED = 'disbursed', 'Disbursed'
    ACTIVE = 'active', 'Active'
    COMPLETED = 'completed', 'Completed'
    DEFAULTED = 'defaulted', 'Defaulted'


class RepaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
    CHECK = 'check', 'Check'


class DeficitStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    WAIVED = 'waived', 'Waived'


class ExcessStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PROCESSED = 'processed', 'Processed'
    REFUNDED = 'refunded', 'Refunded'


class SoftDeleteQuerySet(models.QuerySet):
    """QuerySet with explicit soft-delete filters."""

    def alive(self):
        return self.filter(deleted_at__isnull=True)

    def deleted(self):
        return self.filter(deleted_at__isnull=False)


class SoftDeleteModel(models.Model):
    """Abstract base carrying the ``deleted_at`` tombstone."""

    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        abstract = True

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def soft_delete(self):
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at', 'updated_at'])


class Loan(SoftDeleteModel):
    """
    A fixed-term, fixed-rate loan extended to an employee.

    Only ``status`` and the decision metadata change after creation, and
    only through ``apps.loans.services.LoanLedger``. Every financial figure
    (interest, amount due, schedule, overdue state) is derived on demand by
    ``apps.loans.calculations``.
    """

    organization = models.ForeignKey(
        'organizations.Organization',
        on_delete=models.PROTECT,
        related_name='loans',
        db_index=True,
        help_text="Organization the borrower belongs to."
    )
    employee = models.ForeignKey(
        'organizations.Employee',
        on_delete=models.PROTECT,
        related_name='loans',
        db_index=True,
        help_text="The employee who owns this loan."
    )
    loan_number = models.CharField(
        max_length=50,
        unique=True,
        help_text="Unique loan reference, generated when not supplied."
    )
    loan_type = models.CharField(max_length=100, default='personal')
    principal = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Loan principal amount.",
    )
    interest_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
        help_text="Annual interest rate (percentage).",
    )
    term_months = models.PositiveIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(360)],
        help_text="Loan term in months."
    )
    start_date = models.DateField(help_text="Loan start date.")
    end_date = models.DateField(help_text="Loan end date.")
    status = models.CharField(
        max_length=20,
        choices=LoanStatus.choices,
        default=LoanStatus.PENDING,
        db_index=True,
    )
    purpose = models.TextField(blank=True)
    collateral = models.TextField(blank=True)
    guarantor_name = models.CharField(max_length=255, blank=True)
    guarantor_contact = models.CharField(max_length=50, blank=True)
    guarantor_relationship = models.CharField(max_length=100, blank=True)

    approved_by = models.CharField(max_length=64, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.CharField(max_length=64, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.CharField(max_length=255, blank=True)
    disbursed_by = models.CharField(max_length=64, blank=True)
    disbursed_at = models.DateTimeField(null=True, blank=True)
    disbursement_method = models.CharField(max_length=50, blank=True)
    disbursement_details = models.JSONField(default=dict, blank=True)

    remarks = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'loans'
        ordering = ['-created_at']
        indexes = [
            models.Index(
                fields=['organization', 'status'],
                name='idx_loan_org_status'
            ),
            models.Index(
                fields=['employee', 'status'],
                name='idx_loan_employee_status'
            ),
        ]

    def __str__(self):
        return (
            f"Loan {self.loan_number} - Employee: {self.employee_id} "
            f"- Principal: {self.principal} ({self.status})"
        )


class LoanRepayment(SoftDeleteModel):
    """A single payment event against a loan."""

    loan = models.ForeignKey(
        Loan,
        on_delete=models.PROTECT,
        related_name='repayments',
        db_index=True,
    )
    amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
    )
    principal_portion = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal('0.00'),
    )
    interest_portion = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal('0.00'),
    )
    payment_date = models.DateField()
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    transaction_id = models.CharField(max_length=100, blank=True)
    status = models.CharField(
        max_length=20,
        choices=RepaymentStatus.choices,
        default=RepaymentStatus.PENDING,
        db_index=True,
    )
    remarks = models.CharField(max_length=500, blank=True)

    recorded_by = models.CharField(max_length=64, blank=True)
    approved_by = models.CharField(max_length=64, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.CharField(max_length=64, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'loan_repayments'
        ordering = ['-payment_date', '-id']
        indexes = [
            models.Index(
                fields=['loan', 'status'],
                name='idx_repayment_loan_status'
            ),
        ]

    def __str__(self):
        return f"Repayment #{self.pk} on loan {self.loan_id}: {self.amount} ({self.status})"


class LoanDeficit(SoftDeleteModel):
    """A missed or underpaid amount recorded against a loan."""

    loan = models.ForeignKey(
        Loan,
        on_delete=models.PROTECT,
        related_name='deficits',
        db_index=True,
    )
    amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    due_date = models.DateField()
    fee_amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    status = models.CharField(
        max_length=20,
        choices=DeficitStatus.choices,
        default=DeficitStatus.PENDING,
    )
    remarks = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'loan_deficits'
        ordering = ['-created_at']

    def __str__(self):
        return f"Deficit #{self.pk} on loan {self.loan_id}: {self.amount} ({self.status})"


class LoanExcess(SoftDeleteModel):
    """An overpayment on a loan awaiting processing or refund."""

    loan = models.ForeignKey(
        Loan,
        on_delete=models.PROTECT,
        related_name='excesses',
        db_index=True,
    )
    amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    payment_date = models.DateField()
    fee_amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    status = models.CharField(
        max_length=20,
        choices=ExcessStatus.choices,
        default=ExcessStatus.PENDING,
    )
    remarks = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'loan_excesses'
        ordering = ['-created_at']
        verbose_name_plural = 'loan excesses'

    def __str__(self):
        return f"Excess #{self.pk} on loan {self.loan_id}: {self.amount} ({self.status})"
