"""
Analytics Query

Immutable value object describing the caller's intent for a report.
Authorization and scope resolution are handled server-side by the scope
resolver and the query guard. Timestamps are UNIX epoch seconds (UTC).
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union


class Scope(str, Enum):
    """Authorization boundary of a report"""
    VENDOR = "vendor"  # store ids derived server-side, requested ids ignored
    ADMIN = "admin"  # requested store ids required, validated server-side


@dataclass(frozen=True)
class AnalyticsQuery:
    """
    Requested report parameters.

    Attributes:
        scope: Scope.VENDOR or Scope.ADMIN. Unknown strings are kept as-is
            so the guard can reject them.
        store_ids: Requested store ids (admin scope only)
        start_ts: Range start (inclusive), epoch seconds
        end_ts: Range end (inclusive), epoch seconds
        currency: ISO 4217 currency code (money metrics only)
    """
    scope: Union[Scope, str]
    store_ids: Tuple[int, ...] = field(default_factory=tuple)
    start_ts: Optional[int] = None
    end_ts: Optional[int] = None
    currency: Optional[str] = None

    def __post_init__(self) -> None:
        # Frozen: coerce through object.__setattr__
        object.__setattr__(self, "store_ids", tuple(self.store_ids))
        if not isinstance(self.scope, Scope):
            try:
                object.__setattr__(self, "scope", Scope(self.scope))
            except ValueError:
                pass

    @property
    def scope_name(self) -> str:
        """Scope as a plain string for logging"""
        return self.scope.value if isinstance(self.scope, Scope) else str(self.scope)

    def with_window(self, start_ts: Optional[int], end_ts: Optional[int]) -> "AnalyticsQuery":
        """New query with a different time window"""
        return replace(self, start_ts=start_ts, end_ts=end_ts)

    def with_currency(self, currency: Optional[str]) -> "AnalyticsQuery":
        """New query with a different currency"""
        return replace(self, currency=currency)


def normalize_store_ids(store_ids: Iterable[object]) -> List[int]:
    """
    Normalize a list of store ids for comparison and logging.

    Non-integer and non-positive values are dropped.

    Returns:
        Unique store ids sorted ascending
    """
    unique = set()
    for store_id in store_ids:
        try:
            value = int(store_id)
        except (TypeError, ValueError):
            continue
        if value > 0:
            unique.add(value)
    return sorted(unique)
