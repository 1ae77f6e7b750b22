"""
URL configuration for leads app.
"""
from django.urls import path
from leads.views import (
    AppointmentReceiveView,
    DeletedEndpointsView,
    EndpointRestoreView,
    EndpointView,
    LeadHistoryView,
    LeadStatusView,
)

urlpatterns = [
    path('webhooks/deleted/', DeletedEndpointsView.as_view(), name='endpoint-deleted-list'),
    path('webhooks/<str:endpoint_id>/', EndpointView.as_view(), name='endpoint'),
    path('webhooks/<str:endpoint_id>/restore/', EndpointRestoreView.as_view(), name='endpoint-restore'),
    path('appointments/receive/', AppointmentReceiveView.as_view(), name='appointment-receive'),
    path('leads/<int:lead_id>/status/', LeadStatusView.as_view(), name='lead-status'),
    path('leads/<int:lead_id>/history/', LeadHistoryView.as_view(), name='lead-history'),
]
