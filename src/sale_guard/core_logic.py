"""Business logic layer for Sale Guard.

The :class:`SaleDeletionGuard` decides whether a sale may be deleted. It never
touches storage directly; it is handed a ``SaleStore`` and a
``ReturnLinkCounter`` and only talks to those. The runtime helpers at the
bottom of the module wire the guard to the workbook adapters from
:mod:`sale_guard.data_manager`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import EXPECTED_SCHEMA_VERSION, SaleStatus
from .data_manager import Sale
from .errors import (
    BusinessRuleViolation,
    DataIntegrityError,
    ResourceNotFoundError,
    SaleGuardError,
)


class SaleStore(Protocol):
    """Lookup and persistence for :class:`Sale` records."""

    def find_by_id(self, sale_id: int) -> Optional[Sale]:
        ...

    def save(self, sale: Sale) -> None:
        ...


class ReturnLinkCounter(Protocol):
    """Counts the return records that reference a sale."""

    def count_by_sale_id(self, sale_id: int) -> int:
        ...


class SaleDeletionGuard:
    """Apply the deletion rules for sales.

    A deletion is a soft delete: the sale moves to ``CANCELLED`` and is saved
    back through the store. It is refused when the sale is unknown, already
    completed, or still referenced by returns.
    """

    def __init__(self, sales: SaleStore, returns: ReturnLinkCounter) -> None:
        self.sales = sales
        self.returns = returns

    def delete_sale(self, sale_id: int) -> None:
        """Cancel the sale identified by ``sale_id``.

        Checks run in order and stop at the first failure: the return counter
        is only queried for a sale that exists and is not completed, and the
        store is only written when every check passes.

        Args:
            sale_id (int): Identifier of the sale to delete.

        Raises:
            ResourceNotFoundError: If no sale has ``sale_id``.
            BusinessRuleViolation: If the sale is ``COMPLETED``.
            DataIntegrityError: If one or more returns reference the sale
                (error code ``SALE_HAS_RETURNS``).
        """

        sale = self.sales.find_by_id(sale_id)
        if sale is None:
            log.warning("Delete rejected: sale %s does not exist", sale_id)
            raise ResourceNotFoundError.sale(sale_id)

        if sale.status == SaleStatus.COMPLETED:
            log.warning("Delete rejected: sale %s is already completed", sale_id)
            raise BusinessRuleViolation.cannot_delete_completed_sale()

        return_count = self.returns.count_by_sale_id(sale_id)
        if return_count > 0:
            log.warning("Delete rejected: sale %s has %d associated return(s)", sale_id, return_count)
            raise DataIntegrityError.sale_has_returns(sale_id, return_count)

        previous = sale.status
        sale.status = SaleStatus.CANCELLED
        self.sales.save(sale)
        log.info("Cancelled sale %s (was %s)", sale_id, getattr(previous, "value", previous))


@dataclass(frozen=True)
class RuntimeContext:
    """Settings and the open workbook shared by one CLI invocation."""

    settings: data_manager.ConfigSettings
    workbook: Workbook


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Resolve ``config.ini``, parse it, and open the configured workbook.

    Args:
        config_path (Path | None): Explicit configuration file. When omitted
            the data layer searches upward from the working directory.

    Raises:
        FileNotFoundError: If the configuration file or workbook is missing.
        KeyError: If a required configuration entry is missing.
    """

    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Refuse to work on a workbook whose declared schema we do not know.

    Raises:
        RuntimeError: If ``SchemaVersion`` differs from
            ``EXPECTED_SCHEMA_VERSION``.
    """

    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def build_deletion_guard(context: RuntimeContext) -> SaleDeletionGuard:
    """Wire a :class:`SaleDeletionGuard` to the context's workbook."""

    return SaleDeletionGuard(
        sales=data_manager.WorkbookSaleStore(context.workbook),
        returns=data_manager.WorkbookReturnLinkCounter(context.workbook),
    )


def delete_sale(context: RuntimeContext, sale_id: int) -> None:
    """Delete ``sale_id`` from the context's workbook (in memory only).

    Call :func:`persist_context` afterwards to write the change to disk.
    """

    build_deletion_guard(context).delete_sale(sale_id)


def persist_context(context: RuntimeContext) -> None:
    """Save the workbook to the configured data file."""

    data_manager.save_workbook(context.workbook, destination=context.settings.data_file)
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Return a new context with the workbook reloaded from disk.

    Raises:
        FileNotFoundError: If the workbook is gone.
    """

    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook)


__all__ = [
    "SaleStore",
    "ReturnLinkCounter",
    "SaleDeletionGuard",
    "RuntimeContext",
    "SaleGuardError",
    "ResourceNotFoundError",
    "BusinessRuleViolation",
    "DataIntegrityError",
    "load_runtime_context",
    "ensure_schema_version",
    "build_deletion_guard",
    "delete_sale",
    "persist_context",
    "refresh_context",
]
