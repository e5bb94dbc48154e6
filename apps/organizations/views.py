"""
Organization views for the loan back office.

Views are thin; all business logic is in the service layer.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.organizations.serializers import (
    EmployeeResponseSerializer,
    OrganizationResponseSerializer,
    RegisterEmployeeSerializer,
    RegisterOrganizationSerializer,
)
from apps.organizations.services import OrganizationService

logger = logging.getLogger(__name__)


class RegisterOrganizationView(APIView):
    """
    POST /api/organizations

    Register a new organization.
    """

    def post(self, request):
        serializer = RegisterOrganizationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        organization = OrganizationService.register_organization(
            serializer.validated_data
        )

        return Response(
            OrganizationResponseSerializer(organization).data,
            status=status.HTTP_201_CREATED,
        )


class RegisterEmployeeView(APIView):
    """
    POST /api/employees

    Register a new employee under an existing organization.
    """

    def post(self, request):
        serializer = RegisterEmployeeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        employee = OrganizationService.register_employee(serializer.validated_data)

        return Response(
            EmployeeResponseSerializer(employee).data,
            status=status.HTTP_201_CREATED,
        )
