"""Enumerations and fixed identifiers shared by the Sale Guard layers."""

from __future__ import annotations

from enum import Enum


# Workbook layout version the code understands.
EXPECTED_SCHEMA_VERSION = "1.0.0"


class SaleStatus(str, Enum):
    """Lifecycle states a sale can be in."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class ErrorCode(str, Enum):
    """Machine-readable codes attached to domain errors."""

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    CANNOT_DELETE_COMPLETED_SALE = "CANNOT_DELETE_COMPLETED_SALE"
    DATA_INTEGRITY_VIOLATION = "DATA_INTEGRITY_VIOLATION"
    SALE_HAS_RETURNS = "SALE_HAS_RETURNS"


class SheetName(str, Enum):
    """Worksheets managed by the data layer."""

    SALES = "Sales"
    RETURNS = "Returns"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "SaleStatus",
    "ErrorCode",
    "SheetName",
]
