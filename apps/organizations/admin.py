from django.contrib import admin

from apps.organizations.models import Employee, Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'email', 'phone', 'is_active', 'created_at')
    list_filter = ('is_active', 'created_at')
    search_fields = ('name', 'code', 'email')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'employee_code', 'first_name', 'last_name',
        'organization', 'designation', 'monthly_salary', 'is_active',
    )
    list_filter = ('is_active', 'organization')
    search_fields = ('employee_code', 'first_name', 'last_name', 'email')
    readonly_fields = ('created_at', 'updated_at')
    raw_id_fields = ('organization',)
