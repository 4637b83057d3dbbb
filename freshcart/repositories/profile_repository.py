"""
Profile Repository - delivery profile from Supabase auth user metadata

The web profile screen stores full_name / phone / address in the auth
user's ``user_metadata``; there is no profiles table.
"""
import logging

from freshcart.core.database import get_supabase
from freshcart.core.exceptions import StorageError
from freshcart.domain.order import UserProfile

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Reads delivery profiles through the Supabase admin API"""

    def get_user_profile(self, user_id: str) -> UserProfile:
        """
        Fetch the user's delivery profile.

        Missing metadata fields come back as empty strings.

        Raises:
            StorageError if the admin API call fails
        """
        try:
            response = get_supabase().auth.admin.get_user_by_id(user_id)
        except Exception as e:
            raise StorageError("get_user_profile", e) from e

        user = getattr(response, "user", None)
        if user is None:
            raise StorageError("get_user_profile", LookupError(f"user {user_id} not found"))

        metadata = user.user_metadata or {}
        return UserProfile(
            full_name=(metadata.get("full_name") or "").strip(),
            phone=(metadata.get("phone") or "").strip(),
            address=(metadata.get("address") or "").strip()
        )
