# claimease/storage/profile_store.py
"""Profile storage implementation."""

from typing import Optional

from claimease.storage.base import BaseStore
from claimease.models.profile import Profile


class ProfileStore(BaseStore[Profile]):
    """One extended profile per user."""

    collection = "profiles"
    model = Profile
    id_field = "profile_id"

    def get_by_user(self, user_id: str) -> Optional[Profile]:
        return self.find_one(lambda p: p.user_id == user_id)


_profile_store: Optional[ProfileStore] = None


def get_profile_store() -> ProfileStore:
    global _profile_store
    if _profile_store is None:
        _profile_store = ProfileStore()
    return _profile_store
