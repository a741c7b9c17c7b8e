"""Data access layer for Sale Guard.

This module reads from and writes to the sales workbook. Business rules
belong in :mod:`sale_guard.core_logic`.

The public API covers three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening and persisting the Excel file.
3. Sheet operations: loading ``Sales`` and ``Returns`` rows, plus the two
   adapters (:class:`WorkbookSaleStore`, :class:`WorkbookReturnLinkCounter`)
   the deletion guard is wired with.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import SaleStatus, SheetName


CONFIG_FILE_NAME = "config.ini"
SALES_SHEET = SheetName.SALES.value
RETURNS_SHEET = SheetName.RETURNS.value

SALES_COLUMNS = ("SaleID", "Status", "TotalAmount", "Notes")
RETURNS_COLUMNS = ("ReturnID", "SaleID", "Reason")


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` entries we rely on."""

    data_file: Path
    store_name: str
    schema_version: str


@dataclass
class Sale:
    """A row of the ``Sales`` sheet.

    Instances are mutable so the deletion guard can change ``status`` and
    hand the same object back to the store.
    """

    sale_id: int
    status: SaleStatus
    total_amount: Decimal = Decimal("0.00")
    notes: Optional[str] = None


@dataclass(frozen=True)
class ReturnRow:
    """A row of the ``Returns`` sheet."""

    return_id: str
    sale_id: int
    reason: Optional[str]


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate ``config.ini``.

    An explicit path is returned as-is without checking it. Otherwise the
    search walks from the current working directory up to the filesystem
    root and returns the first ``CONFIG_FILE_NAME`` it finds.

    Args:
        explicit_path (Path | None): Path to use instead of searching.

    Returns:
        Path: The explicit path or the discovered configuration file.

    Raises:
        FileNotFoundError: If no configuration file exists on the way up.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config_path`` into a ``ConfigParser``.

    Missing sections are not an error here; :func:`parse_settings` validates
    required entries.

    Raises:
        FileNotFoundError: If the file does not exist after expanding ``~``.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into :class:`ConfigSettings`.

    Relative ``DataFile`` entries are anchored at ``base_path`` (normally the
    directory holding ``config.ini``), or the current working directory when
    no base is given.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Anchor for relative ``DataFile`` values.

    Returns:
        ConfigSettings: Settings with an absolute data file path.

    Raises:
        KeyError: If a required section or option is missing.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        store_name = parser.get("System", "StoreName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        store_name=store_name,
        schema_version=schema_version,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the sales workbook with :func:`openpyxl.load_workbook`.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Write ``workbook`` to ``destination``, creating parent folders."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, dropping unsaved in-memory edits."""

    return open_workbook(data_file)


def iter_sales(workbook: Workbook) -> Iterable[Sale]:
    """Yield a :class:`Sale` for every readable row of the ``Sales`` sheet.

    Blank rows are ignored. Rows whose SaleID or Status cannot be parsed are
    skipped with a warning naming the row.
    """

    sheet = workbook[SALES_SHEET]
    for row_idx, raw in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        if not any(cell is not None for cell in raw):
            continue
        try:
            record = deserialize_sale(raw)
        except ValueError as exc:
            log.warning("Skipping %s row %d: %s", SALES_SHEET, row_idx, exc)
            continue
        yield record


def iter_returns(workbook: Workbook) -> Iterable[ReturnRow]:
    """Yield a :class:`ReturnRow` for every readable row of ``Returns``."""

    sheet = workbook[RETURNS_SHEET]
    for row_idx, raw in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        if not any(cell is not None for cell in raw):
            continue
        try:
            record = deserialize_return(raw)
        except ValueError as exc:
            log.warning("Skipping %s row %d: %s", RETURNS_SHEET, row_idx, exc)
            continue
        yield record


def append_sale(workbook: Workbook, record: Sale) -> None:
    workbook[SALES_SHEET].append(serialize_sale(record))


def append_return(workbook: Workbook, record: ReturnRow) -> None:
    workbook[RETURNS_SHEET].append(serialize_return(record))


def update_sale(workbook: Workbook, sale_id: int, *, field_values: dict[str, Any]) -> None:
    """Overwrite selected columns of the sale identified by ``sale_id``.

    Args:
        workbook (Workbook): Workbook holding the ``Sales`` sheet.
        sale_id (int): Identifier of the row to change.
        field_values (dict[str, Any]): Column title to new cell value.

    Raises:
        KeyError: If the sale or one of the columns does not exist.
    """

    row_index = locate_sale_row(workbook, sale_id)
    if row_index is None:
        raise KeyError(f"Sale not found: {sale_id}")

    sheet = workbook[SALES_SHEET]
    header_map = {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}

    for field, value in field_values.items():
        if field not in header_map:
            raise KeyError(f"Unknown sale field: {field}")
        sheet.cell(row=row_index, column=header_map[field], value=value)


def locate_sale_row(workbook: Workbook, sale_id: int) -> Optional[int]:
    """Return the 1-based row index of ``sale_id`` in the ``Sales`` sheet.

    SaleID cells are read through :func:`parse_sale_id`, the same conversion
    :func:`iter_sales` applies, so ``"5"`` and ``5.0`` both match ``5``. Cells
    that do not hold an id are passed over. ``None`` is returned when nothing
    matches.

    Raises:
        KeyError: If the sheet has no ``SaleID`` header.
    """

    sheet = workbook[SALES_SHEET]
    header_map = {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}
    if "SaleID" not in header_map:
        raise KeyError("Unknown column: SaleID")

    key_col_index = header_map["SaleID"]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        try:
            if parse_sale_id(row[key_col_index - 1]) == sale_id:
                return row_idx
        except ValueError:
            continue

    return None


def parse_sale_id(raw: object) -> int:
    """Read a SaleID cell that may hold an int, a whole float or digit text.

    Raises:
        ValueError: If the cell is blank or is not a whole number.
    """

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValueError("SaleID is blank")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(f"SaleID is not a number: {raw!r}") from None
    if not value.is_finite() or value != value.to_integral_value():
        raise ValueError(f"SaleID is not a whole number: {raw!r}")
    return int(value)


def serialize_sale(record: Sale) -> list[object]:
    """Order a :class:`Sale` as ``[SaleID, Status, TotalAmount, Notes]``."""

    return [record.sale_id, SaleStatus(record.status).value, record.total_amount, record.notes]


def serialize_return(record: ReturnRow) -> list[object]:
    return [record.return_id, record.sale_id, record.reason]


def deserialize_sale(raw_row: Sequence[object]) -> Sale:
    """Convert a raw ``Sales`` row into a :class:`Sale`.

    Excel may hand back ids as floats or text and amounts as floats or
    strings, so the id goes through :func:`parse_sale_id` and the amount
    through ``str`` into :class:`~decimal.Decimal`.

    Raises:
        ValueError: If the SaleID is not a whole number or the status cell is
            not a known :class:`SaleStatus`.
    """

    sale_id, status_raw, total_raw, notes = (list(raw_row) + [None] * 4)[:4]
    try:
        status = SaleStatus(str(status_raw).strip())
    except ValueError:
        raise ValueError(f"Unknown sale status: {status_raw!r}") from None
    total_amount = Decimal(str(total_raw)) if total_raw is not None else Decimal("0.00")
    return Sale(
        sale_id=parse_sale_id(sale_id),
        status=status,
        total_amount=total_amount,
        notes=(str(notes) if notes is not None else None),
    )


def deserialize_return(raw_row: Sequence[object]) -> ReturnRow:
    return_id, sale_id, reason = (list(raw_row) + [None] * 3)[:3]
    return ReturnRow(
        return_id=str(return_id),
        sale_id=parse_sale_id(sale_id),
        reason=(str(reason) if reason is not None else None),
    )


class WorkbookSaleStore:
    """``SaleStore`` backed by the ``Sales`` sheet of an open workbook."""

    def __init__(self, workbook: Workbook) -> None:
        self.workbook = workbook

    def find_by_id(self, sale_id: int) -> Optional[Sale]:
        for sale in iter_sales(self.workbook):
            if sale.sale_id == sale_id:
                log.debug("Found sale %s with status %s", sale_id, sale.status.value)
                return sale
        log.debug("No sale stored under id %s", sale_id)
        return None

    def save(self, sale: Sale) -> None:
        """Write ``sale`` back to its row, appending a new row if it has none."""

        if locate_sale_row(self.workbook, sale.sale_id) is None:
            append_sale(self.workbook, sale)
            log.debug("Appended sale %s", sale.sale_id)
            return
        update_sale(
            self.workbook,
            sale.sale_id,
            field_values={
                "Status": SaleStatus(sale.status).value,
                "TotalAmount": sale.total_amount,
                "Notes": sale.notes,
            },
        )
        log.debug("Updated sale %s", sale.sale_id)


class WorkbookReturnLinkCounter:
    """``ReturnLinkCounter`` backed by the ``Returns`` sheet."""

    def __init__(self, workbook: Workbook) -> None:
        self.workbook = workbook

    def count_by_sale_id(self, sale_id: int) -> int:
        return sum(1 for row in iter_returns(self.workbook) if row.sale_id == sale_id)
