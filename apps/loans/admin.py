from django.contrib import admin

from apps.loans.models import Loan, LoanDeficit, LoanExcess, LoanRepayment


class LoanRepaymentInline(admin.TabularInline):
    model = LoanRepayment
    extra = 0
    fields = ('amount', 'payment_date', 'payment_method', 'status', 'deleted_at')
    readonly_fields = ('deleted_at',)


@admin.register(Loan)
class LoanAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'loan_number', 'employee', 'organization', 'principal',
        'interest_rate', 'term_months', 'status', 'start_date', 'deleted_at',
    )
    list_filter = ('status', 'loan_type', 'start_date')
    search_fields = ('loan_number', 'employee__first_name', 'employee__last_name')
    readonly_fields = (
        'approved_by', 'approved_at', 'rejected_by', 'rejected_at',
        'disbursed_by', 'disbursed_at', 'created_at', 'updated_at', 'deleted_at',
    )
    raw_id_fields = ('organization', 'employee')
    inlines = [LoanRepaymentInline]


@admin.register(LoanRepayment)
class LoanRepaymentAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'loan', 'amount', 'principal_portion', 'interest_portion',
        'payment_date', 'payment_method', 'status', 'deleted_at',
    )
    list_filter = ('status', 'payment_method')
    readonly_fields = ('created_at', 'updated_at', 'deleted_at')
    raw_id_fields = ('loan',)


@admin.register(LoanDeficit)
class LoanDeficitAdmin(admin.ModelAdmin):
    list_display = ('id', 'loan', 'amount', 'due_date', 'fee_amount', 'status', 'deleted_at')
    list_filter = ('status',)
    raw_id_fields = ('loan',)


@admin.register(LoanExcess)
class LoanExcessAdmin(admin.ModelAdmin):
    list_display = ('id', 'loan', 'amount', 'payment_date', 'fee_amount', 'status', 'deleted_at')
    list_filter = ('status',)
    raw_id_fields = ('loan',)
