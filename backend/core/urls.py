"""
Core app URL configuration.

URL prefix (registered in ``backend/urls.py``)::

    path('api/core/', include('core.urls'))

Endpoint summary
----------------
GET  /api/core/constants/                  — System choice enumerations and reference data.
GET  /api/core/notifications/              — List notifications for the authenticated user.
POST /api/core/notifications/{id}/read/    — Mark a single notification as read.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = "core"

router = DefaultRouter()
router.register(
    prefix=r"notifications",
    viewset=views.NotificationViewSet,
    basename="notification",
)

urlpatterns = [
    path(
        "constants/",
        views.SystemConstantsView.as_view(),
        name="system-constants",
    ),
    path("", include(router.urls)),
]
