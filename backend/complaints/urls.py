"""
Complaints app URL configuration.

All routes are registered under the ``/api/`` prefix.

Route Hierarchy
---------------
  /api/complaints/                          → search / submit
  /api/complaints/{id}/                     → retrieve

  ── Workflow @actions ───────────────────────────────────────────
  POST /api/complaints/{id}/transition/
  POST /api/complaints/bulk-transition/
  POST /api/complaints/{id}/close/
  POST /api/complaints/{id}/priority/

  ── Assignment @actions ─────────────────────────────────────────
  POST /api/complaints/{id}/assign/
  POST /api/complaints/{id}/reassign/
  POST /api/complaints/bulk-assign/
  GET  /api/complaints/unassigned/
  GET  /api/complaints/sla/?mode=overdue|at_risk

  ── Sub-resource @actions ───────────────────────────────────────
  GET/POST /api/complaints/{id}/comments/
  GET      /api/complaints/{id}/status-history/
  GET      /api/complaints/{id}/assignment-history/
  GET/POST /api/complaints/{id}/escalations/

  POST /api/escalations/{id}/acknowledge/
  POST /api/escalations/{id}/resolve/

  GET  /api/jurisdiction/
"""

from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import ComplaintViewSet, EscalationViewSet, JurisdictionView

router = DefaultRouter()
router.register(
    prefix=r"complaints",
    viewset=ComplaintViewSet,
    basename="complaint",
)
router.register(
    prefix=r"escalations",
    viewset=EscalationViewSet,
    basename="escalation",
)

urlpatterns = [
    path("jurisdiction/", JurisdictionView.as_view(), name="jurisdiction"),
] + router.urls
