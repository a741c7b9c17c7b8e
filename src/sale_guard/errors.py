"""Domain errors raised by Sale Guard.

Every error carries the fields a presentation layer needs (a stable
``error_code``, a ``user_message``, a ``suggestion`` and structured
``details``) so callers can render a failure without re-deriving text.
The three concrete kinds are siblings: a failure is exactly one of them.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from .constants import ErrorCode


DEFAULT_DEPENDENCY_SUGGESTION = "Please remove or reassign all dependent records before deletion."

# (resource type, dependent resource) -> suggestion, keys lower-cased.
DEPENDENCY_SUGGESTIONS: Mapping[Tuple[str, str], str] = {
    ("sale", "returns"): "Please process or cancel all associated returns before deleting this sale.",
}


class SaleGuardError(Exception):
    """Base class for all failures surfaced by the package."""

    title = "Error"
    default_code = ErrorCode.BUSINESS_RULE_VIOLATION.value
    default_suggestion = "Please review the request and try again."

    def __init__(
        self,
        user_message: str,
        *,
        error_code: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.error_code = error_code or self.default_code
        self.suggestion = suggestion or self.default_suggestion

    def details(self) -> Dict[str, Any]:
        return {}


class ResourceNotFoundError(SaleGuardError):
    """Raised when an identifier does not resolve to a stored record."""

    title = "Resource Not Found"
    default_code = ErrorCode.RESOURCE_NOT_FOUND.value
    default_suggestion = (
        "Please verify the provided information and try again. "
        "If the problem persists, contact support."
    )

    def __init__(self, user_message: str, *, resource_type: Optional[str] = None, resource_id: Any = None) -> None:
        super().__init__(user_message)
        self.resource_type = resource_type
        self.resource_id = resource_id

    @classmethod
    def sale(cls, sale_id: Any) -> "ResourceNotFoundError":
        return cls(f"Sale not found with id: {sale_id}", resource_type="Sale", resource_id=sale_id)

    def details(self) -> Dict[str, Any]:
        if self.resource_type is None:
            return {}
        return {"resourceType": self.resource_type, "resourceId": self.resource_id}


class BusinessRuleViolation(SaleGuardError):
    """Raised when a requested operation violates a domain constraint."""

    title = "Business Rule Violation"
    default_code = ErrorCode.BUSINESS_RULE_VIOLATION.value
    default_suggestion = "Please review the requirements and adjust your input accordingly."

    @classmethod
    def cannot_delete_completed_sale(cls) -> "BusinessRuleViolation":
        return cls(
            "Completed sales cannot be deleted for audit purposes. "
            "If you need to reverse this transaction, please process a refund instead.",
            error_code=ErrorCode.CANNOT_DELETE_COMPLETED_SALE.value,
        )


class DataIntegrityError(SaleGuardError):
    """Raised when a record cannot be removed because other records depend on it.

    Args:
        resource_type (str): Kind of record the caller tried to remove.
        resource_id (Any): Identifier of that record.
        dependent_resource (str): Kind of records still referencing it.
        user_message (str): Human readable explanation.
        error_code (str | None): Machine-readable code; defaults to
            ``DATA_INTEGRITY_VIOLATION``.
        suggestion (str | None): Remedy shown to the user. Derived from
            ``DEPENDENCY_SUGGESTIONS`` when omitted.
    """

    title = "Data Integrity Violation"
    default_code = ErrorCode.DATA_INTEGRITY_VIOLATION.value

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        dependent_resource: str,
        user_message: str,
        *,
        error_code: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        super().__init__(
            user_message,
            error_code=error_code,
            suggestion=suggestion or suggest_for_dependency(resource_type, dependent_resource),
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.dependent_resource = dependent_resource

    @classmethod
    def sale_has_returns(cls, sale_id: Any, return_count: int) -> "DataIntegrityError":
        """Build the error for a sale that still has ``return_count`` returns."""

        plural = "" if return_count == 1 else "s"
        return cls(
            "Sale",
            sale_id,
            "Returns",
            f"Cannot delete sale because it has {return_count} associated return{plural}",
            error_code=ErrorCode.SALE_HAS_RETURNS.value,
        )

    def details(self) -> Dict[str, Any]:
        return {
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "dependentResource": self.dependent_resource,
        }


def suggest_for_dependency(resource_type: str, dependent_resource: str) -> str:
    """Return the remedy text for a blocked delete of ``resource_type``."""

    key = (resource_type.lower(), dependent_resource.lower())
    return DEPENDENCY_SUGGESTIONS.get(key, DEFAULT_DEPENDENCY_SUGGESTION)


def describe_error(error: SaleGuardError) -> Dict[str, Any]:
    """Render ``error`` as a plain mapping for presentation layers."""

    return {
        "error": error.title,
        "message": error.user_message,
        "error_code": error.error_code,
        "suggestion": error.suggestion,
        "details": error.details(),
    }


__all__ = [
    "SaleGuardError",
    "ResourceNotFoundError",
    "BusinessRuleViolation",
    "DataIntegrityError",
    "suggest_for_dependency",
    "describe_error",
]
