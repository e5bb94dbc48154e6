"""
Organization and employee serializers.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.organizations.models import Employee, Organization


class RegisterOrganizationSerializer(serializers.Serializer):
    """Serializer for organization registration request."""

    name = serializers.CharField(max_length=255, required=True)
    code = serializers.CharField(
        max_length=50,
        required=True,
        help_text="Short unique organization code.",
    )
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)

    def validate_code(self, value):
        """Codes are stored upper-case and must be unique."""
        code = value.strip().upper()
        if Organization.objects.filter(code=code).exists():
            raise serializers.ValidationError(
                f"Organization code {code} is already registered."
            )
        return code


class OrganizationResponseSerializer(serializers.Serializer):
    organization_id = serializers.IntegerField(source='pk')
    name = serializers.CharField()
    code = serializers.CharField()
    email = serializers.CharField()
    phone = serializers.CharField()
    is_active = serializers.BooleanField()


class RegisterEmployeeSerializer(serializers.Serializer):
    """Serializer for employee registration request."""

    organization_id = serializers.IntegerField(min_value=1, required=True)
    employee_code = serializers.CharField(max_length=50, required=True)
    first_name = serializers.CharField(max_length=100, required=True)
    last_name = serializers.CharField(max_length=100, required=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    designation = serializers.CharField(max_length=100, required=False, allow_blank=True)
    monthly_salary = serializers.DecimalField(
        max_digits=15,
        decimal_places=2,
        min_value=Decimal('0'),
        required=False,
        default=Decimal('0.00'),
    )

    def validate(self, attrs):
        """Employee codes are unique within an organization."""
        duplicate = Employee.objects.filter(
            organization_id=attrs['organization_id'],
            employee_code=attrs['employee_code'],
        ).exists()
        if duplicate:
            raise serializers.ValidationError(
                "Employee code is already registered for this organization."
            )
        return attrs


class EmployeeResponseSerializer(serializers.Serializer):
    employee_id = serializers.IntegerField(source='pk')
    organization_id = serializers.IntegerField()
    employee_code = serializers.CharField()
    name = serializers.CharField(source='full_name')
    designation = serializers.CharField()
    monthly_salary = serializers.DecimalField(max_digits=15, decimal_places=2)
