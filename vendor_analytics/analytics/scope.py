"""
Scope Resolver

Turns the authenticated caller plus a requested scope into the minimal,
authorized set of store ids a query may read (fail-closed).

- Vendor scope: every store owned by the current actor, derived server-side.
- Admin scope: permission check on the current actor, then validation of the
  requested store ids.

This module does not log. The query guard is the single place where
violations are recorded.
"""

from typing import Any, Iterable, List, Optional

from vendor_analytics.analytics.exceptions import AccessDeniedError, InvalidScopeError
from vendor_analytics.analytics.interfaces import PermissionChecker, StoreOwnershipLookup
from vendor_analytics.analytics.query import AnalyticsQuery, Scope
from vendor_analytics.config import get_settings

_UNSET: Any = object()


class ScopeResolver:
    """
    Resolves effective store ids for analytics queries.

    Example:
        resolver = ScopeResolver(permissions, ownership)
        store_ids = resolver.resolve_effective_store_ids(query)
    """

    def __init__(
        self,
        permissions: PermissionChecker,
        ownership: StoreOwnershipLookup,
        admin_permissions: Optional[Iterable[str]] = None,
        superuser_actor_id: Optional[int] = _UNSET,
    ):
        settings = get_settings().analytics
        self.permissions = permissions
        self.ownership = ownership
        self.admin_permissions = tuple(
            admin_permissions if admin_permissions is not None else settings.admin_permissions
        )
        # None disables the superuser bypass
        self.superuser_actor_id = (
            settings.superuser_actor_id if superuser_actor_id is _UNSET else superuser_actor_id
        )

    def resolve_effective_store_ids(self, query: AnalyticsQuery) -> List[int]:
        """
        Resolve the store ids the query is allowed to read.

        Returns:
            Sorted, de-duplicated positive store ids (a copy, the query is
            never modified)

        Raises:
            AccessDeniedError: Not logged in, no vendor store, not an admin,
                or invalid requested store ids
            InvalidScopeError: Scope is neither vendor nor admin
        """
        if query.scope == Scope.VENDOR:
            return self._resolve_vendor_store_ids()
        if query.scope == Scope.ADMIN:
            return self._resolve_admin_store_ids(query)
        raise InvalidScopeError("Invalid analytics scope.")

    def is_admin_scope_allowed(self, actor_id: int) -> bool:
        """
        Whether the given actor may run admin-scope queries.

        Only the currently authenticated actor is ever evaluated, so a caller
        cannot ask about (or impersonate) another account.
        """
        if int(self.permissions.current_actor_id()) != actor_id:
            return False

        if actor_id <= 0:
            return False

        if self.superuser_actor_id is not None and actor_id == self.superuser_actor_id:
            return True

        return any(
            self.permissions.has_permission(actor_id, permission)
            for permission in self.admin_permissions
        )

    def require_admin(self) -> int:
        """
        Assert the current actor holds admin scope.

        Returns:
            The current actor id
        """
        actor_id = int(self.permissions.current_actor_id())
        if not self.is_admin_scope_allowed(actor_id):
            raise AccessDeniedError("Admin scope is not permitted for this account.")
        return actor_id

    def _resolve_vendor_store_ids(self) -> List[int]:
        actor_id = int(self.permissions.current_actor_id())
        if actor_id <= 0:
            raise AccessDeniedError("You must be logged in.")

        owned = self.ownership.store_ids_owned_by(actor_id) or set()
        effective = sorted({int(store_id) for store_id in owned if int(store_id) > 0})
        if not effective:
            raise AccessDeniedError("No vendor store found for your account.")

        # All owned stores; per-store filtering is up to the caller
        return effective

    def _resolve_admin_store_ids(self, query: AnalyticsQuery) -> List[int]:
        actor_id = int(self.permissions.current_actor_id())
        if not self.is_admin_scope_allowed(actor_id):
            raise AccessDeniedError("Admin scope is not permitted for this account.")

        if not query.store_ids:
            raise AccessDeniedError("Admin scope requires one or more store IDs.")

        ids = set()
        for store_id in query.store_ids:
            if isinstance(store_id, bool) or not isinstance(store_id, int) or store_id <= 0:
                raise AccessDeniedError("Invalid store ID in admin scope.")
            ids.add(store_id)

        return sorted(ids)
