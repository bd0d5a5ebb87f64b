# claimease/storage/user_store.py
"""User storage implementation."""

from typing import Dict, Any, Optional, List, Callable

from claimease.storage.base import BaseStore
from claimease.models.user import User
from claimease.core.constants import UserRole


class UserStore(BaseStore[User]):
    """Storage for user accounts."""

    collection = "users"
    model = User
    id_field = "user_id"

    # Custom query methods
    def get_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive email lookup."""
        email = (email or "").strip().lower()
        return self.find_one(lambda u: u.email == email)

    def get_by_reset_token(self, token_hash: str) -> Optional[User]:
        return self.find_one(lambda u: u.reset_password_token == token_hash)

    def get_by_role(self, role: UserRole) -> List[User]:
        return self.find(lambda u: u.role == role)

    def search(
        self,
        scope: Optional[Callable[[User], bool]] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        department: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10
    ) -> tuple[List[User], int]:
        """Search users with multiple filters."""
        results = self.get_all()

        if scope:
            results = [u for u in results if scope(u)]

        if role:
            results = [u for u in results if u.role == role]

        if is_active is not None:
            results = [u for u in results if u.is_active == is_active]

        if department:
            results = [u for u in results if (u.department or "").lower() == department.lower()]

        if search:
            term = search.lower()
            results = [
                u for u in results
                if term in u.first_name.lower()
                or term in u.last_name.lower()
                or term in u.email
                or term in u.phone
            ]

        if sort_by not in {"created_at", "first_name", "last_name", "email", "role", "last_login"}:
            sort_by = "created_at"

        return self.paginate(
            results,
            sort_key=lambda u: (getattr(u, sort_by) is not None, getattr(u, sort_by) or ""),
            descending=sort_order == "desc",
            page=page,
            limit=limit
        )

    # Statistics
    def get_statistics(self) -> Dict[str, Any]:
        all_users = self.get_all()
        by_role: Dict[str, int] = {}
        for user in all_users:
            by_role[user.role] = by_role.get(user.role, 0) + 1

        return {
            "total": len(all_users),
            "active": len([u for u in all_users if u.is_active]),
            "inactive": len([u for u in all_users if not u.is_active]),
            "by_role": by_role,
        }


# Singleton instance
_user_store: Optional[UserStore] = None


def get_user_store() -> UserStore:
    """Get the user store singleton."""
    global _user_store
    if _user_store is None:
        _user_store = UserStore()
    return _user_store
