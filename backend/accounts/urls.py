"""
Accounts app URL configuration.

Included in the project-level ``urls.py`` as::

    path('api/accounts/', include('accounts.urls')),

Endpoint Map
------------
    GET    /me/     → MeView
"""

from django.urls import path

from .views import MeView

app_name = "accounts"

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),
]
