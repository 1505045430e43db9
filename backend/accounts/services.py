"""
Accounts app service layer.

Read-only helpers over the staffing profiles.  Profiles are maintained
by staffing administration (Django admin); the complaint engine only
looks them up.
"""

from __future__ import annotations

import logging
from typing import Any

from core.domain.access import get_user_role_name
from core.domain.exceptions import NotFound
from core.permissions_constants import ROLE_CAPABILITIES

from .models import StaffProfile, User

logger = logging.getLogger(__name__)


class CurrentUserService:

    @staticmethod
    def get_profile(user: User) -> dict[str, Any]:
        """
        Return the authenticated user's identity, role and capability list,
        plus the staff profile when one exists.
        """
        role = get_user_role_name(user)
        profile = StaffProfile.objects.select_related("department", "ward").filter(user=user).first()
        return {
            "user": user,
            "role": role,
            "capabilities": sorted(ROLE_CAPABILITIES.get(role, ())),
            "staff_profile": profile,
        }


class StaffDirectoryService:

    @staticmethod
    def get_staff_profile(user_id: int) -> StaffProfile:
        """
        Look up the staff profile for a user id.

        Raises:
            NotFound: the user does not exist or has no staff profile.
        """
        try:
            return StaffProfile.objects.select_related("user", "department", "ward").get(user_id=user_id)
        except StaffProfile.DoesNotExist:
            raise NotFound(f"No staff profile exists for user {user_id}.")
