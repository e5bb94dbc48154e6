"""
Organization URL configuration.
"""

from django.urls import path

from apps.organizations.views import RegisterEmployeeView, RegisterOrganizationView

urlpatterns = [
    path('organizations', RegisterOrganizationView.as_view(), name='register-organization'),
    path('employees', RegisterEmployeeView.as_view(), name='register-employee'),
]
