"""Command-line entry point for Sale Guard.

This module only wires argparse to the business layer: it parses arguments,
hands them to :mod:`sale_guard.core_logic`, persists the workbook on success,
and turns domain errors into exit codes.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log
from .errors import (
    BusinessRuleViolation,
    DataIntegrityError,
    ResourceNotFoundError,
    SaleGuardError,
    describe_error,
)


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_RULE_VIOLATION = 2
EXIT_MISSING_FILE = 3
EXIT_NOT_FOUND = 4
EXIT_DATA_INTEGRITY = 5


@dataclass(frozen=True)
class CommandSpec:
    """How a sub-command is registered and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="sales-cli",
        description="Command-line tools for the Sale Guard workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(parser: argparse.ArgumentParser) -> Mapping[str, CommandSpec]:
    """Attach every sub-command to ``parser`` and return the command table."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    specs = [register_delete_sale_command(subparsers)]
    for spec in specs:
        spec.register(subparsers)
    return build_command_table(specs)


def register_delete_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Describe the ``delete-sale`` command."""
    name = "delete-sale"
    help_text = "Cancel a sale that is not completed and has no returns."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--sale-id", type=int, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete_sale)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Load the context from ``config_path`` or ``./config.ini``."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    context = core_logic.load_runtime_context(target)
    core_logic.ensure_schema_version(context)
    return context


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Run the executor registered for ``args.command``."""
    if getattr(args, "command", None) is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(specs: Iterable[CommandSpec]) -> MutableMapping[str, CommandSpec]:
    """Index ``specs`` by name, refusing duplicates."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def run_delete_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_sale(context, args.sale_id)
    return EXIT_OK


def handle_cli_error(error: Exception) -> int:
    """Log ``error`` and return the matching exit code."""
    if isinstance(error, SaleGuardError):
        payload = describe_error(error)
        log.error("%s [%s]: %s", payload["error"], payload["error_code"], payload["message"])
        log.error("Suggestion: %s", payload["suggestion"])
        if isinstance(error, DataIntegrityError):
            return EXIT_DATA_INTEGRITY
        if isinstance(error, ResourceNotFoundError):
            return EXIT_NOT_FOUND
        if isinstance(error, BusinessRuleViolation):
            return EXIT_RULE_VIOLATION
        return EXIT_FAILURE
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return EXIT_MISSING_FILE
    log.error("%s", error)
    return EXIT_FAILURE


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Save the workbook, reporting read-only files as ``RuntimeError``."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """Parse ``argv``, run the command and persist on success."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == EXIT_OK:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
