"""Analytics exceptions.

Every exception is fail-closed: the caller receives a hard error, never a
silently empty or partially trusted result. Each type carries a stable
machine-readable ``code`` and an HTTP status hint for the reporting endpoint.
"""

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base exception for analytics errors."""

    default_code: str = "analytics_error"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize analytics error.

        Args:
            message: Human-readable error message. Must not contain PII.
            code: Stable violation code.
            details: Additional non-PII context.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for an error response body."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidScopeError(AnalyticsError):
    """Scope value outside of vendor/admin."""

    default_code = "invalid_scope"
    status_code = 400


class AccessDeniedError(AnalyticsError):
    """Scope, permission or ownership checks failed."""

    default_code = "access_denied"
    status_code = 403


class InvalidTimeWindowError(AnalyticsError):
    """Missing, invalid or wrongly shaped timestamps."""

    default_code = "invalid_time_window"
    status_code = 400


class MissingCurrencyError(AnalyticsError):
    """Money metric requested without a currency code."""

    default_code = "missing_currency"
    status_code = 400


class InvariantViolationError(AnalyticsError):
    """Taxonomy, shape, anchoring or developer-path violation.

    Raised for conditions that should never occur if upstream invariants
    hold; these must surface loudly.
    """

    default_code = "invariant_violation"
    status_code = 500
