"""
Organization service layer.

Registration and lookup of organizations and employees.
Views delegate to this service.
"""

import logging

from apps.core.exceptions import EmployeeNotFoundError, OrganizationNotFoundError
from apps.organizations.models import Employee, Organization

logger = logging.getLogger(__name__)


class OrganizationService:
    """Service class for organization and employee operations."""

    @staticmethod
    def register_organization(validated_data: dict) -> Organization:
        """
        Register a new organization.

        Args:
            validated_data: Dict with name, code and optional contact fields.

        Returns:
            The newly created Organization instance.
        """
        organization = Organization.objects.create(
            name=validated_data['name'],
            code=validated_data['code'],
            email=validated_data.get('email', ''),
            phone=validated_data.get('phone', ''),
            address=validated_data.get('address', ''),
        )

        logger.info(
            "Registered organization %s (ID: %d)",
            organization.code,
            organization.pk,
        )

        return organization

    @staticmethod
    def register_employee(validated_data: dict) -> Employee:
        """
        Register a new employee under an existing organization.

        Raises:
            OrganizationNotFoundError: If the organization does not exist.
        """
        organization = OrganizationService.get_organization(
            validated_data['organization_id']
        )

        employee = Employee.objects.create(
            organization=organization,
            employee_code=validated_data['employee_code'],
            first_name=validated_data['first_name'],
            last_name=validated_data['last_name'],
            email=validated_data.get('email', ''),
            phone_number=validated_data.get('phone_number', ''),
            designation=validated_data.get('designation', ''),
            monthly_salary=validated_data.get('monthly_salary', 0),
        )

        logger.info(
            "Registered employee %s (ID: %d) for organization %d",
            employee.full_name,
            employee.pk,
            organization.pk,
        )

        return employee

    @staticmethod
    def get_organization(organization_id: int) -> Organization:
        try:
            return Organization.objects.get(pk=organization_id)
        except Organization.DoesNotExist:
            raise OrganizationNotFoundError(
                detail=f"Organization with ID {organization_id} not found."
            )

    @staticmethod
    def get_employee(employee_id: int) -> Employee:
        try:
            return Employee.objects.select_related('organization').get(pk=employee_id)
        except Employee.DoesNotExist:
            raise EmployeeNotFoundError(
                detail=f"Employee with ID {employee_id} not found."
            )
