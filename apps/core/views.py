"""
Core views for the loan back office.
"""

import logging
from pathlib import Path, PurePath

from django.conf import settings
from django.http import JsonResponse
from rest_framework import serializers, status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.tasks import DEFAULT_IMPORT_FILE, IMPORT_SUFFIXES, import_loans

logger = logging.getLogger(__name__)


def health_check(request):
    """
    GET /health/

    Simple health check endpoint for Docker and load balancer probes.
    Exempt from API key authentication.
    """
    return JsonResponse({'status': 'healthy'}, status=200)


class TriggerImportSerializer(serializers.Serializer):
    file_name = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="Import file name inside DATA_DIR; defaults to loans.csv.",
    )

    def validate_file_name(self, value):
        """Only bare file names are accepted; the file is read from DATA_DIR."""
        if not value:
            return DEFAULT_IMPORT_FILE
        if PurePath(value).name != value or '\\' in value or value in ('.', '..'):
            raise serializers.ValidationError(
                "Give a file name inside the data directory, not a path."
            )
        if PurePath(value).suffix.lower() not in IMPORT_SUFFIXES:
            raise serializers.ValidationError(
                f"Import files must be one of: {', '.join(IMPORT_SUFFIXES)}."
            )
        return value


class TriggerImportView(APIView):
    """
    POST /api/import-loans

    Queue a background import of loans from a CSV or Excel file in DATA_DIR.
    """

    def post(self, request):
        serializer = TriggerImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        file_name = serializer.validated_data.get('file_name') or DEFAULT_IMPORT_FILE
        task = import_loans.delay(str(Path(settings.DATA_DIR) / file_name))

        logger.info(
            "Loan import of %s triggered by %s: task=%s",
            file_name,
            getattr(request, 'actor_id', None),
            task.id,
        )

        return Response(
            {
                'message': 'Loan import task has been triggered.',
                'task_id': task.id,
            },
            status=status.HTTP_202_ACCEPTED,
        )
