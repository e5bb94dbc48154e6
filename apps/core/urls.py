"""
Core app URL configuration for the bulk import trigger.
"""

from django.urls import path

from apps.core.views import TriggerImportView

urlpatterns = [
    path(
        'import-loans',
        TriggerImportView.as_view(),
        name='import-loans',
    ),
]
