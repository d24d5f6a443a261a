# File: relschema/cli.py
"""
relschema - Command-Line Interface
===================================

Compiles a schema file and prints the resulting table descriptors.

Usage examples::

    # Print descriptors as JSON
    python -m relschema --schema order.json

    # YAML output, treating 'etag' as a virtual attribute
    python -m relschema -s order.yaml --format yaml --virtual etag

    # Check annotations only
    python -m relschema -s order.json --validate-only

Exit codes:
    0  success
    1  validation or compile error
    4  input or argument error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

import yaml
from pydantic import ValidationError as PydanticValidationError

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relschema")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root relschema logger based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("relschema")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from relschema import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="relschema",
        description=(
            "relschema: compile a nested JSON Schema into relational "
            "table descriptors and relations."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s order.json\n"
            "  %(prog)s -s order.yaml --format yaml --virtual etag\n"
            "  %(prog)s -s order.json --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"relschema v{__version__}",
    )

    parser.add_argument(
        "-s", "--schema",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the dereferenced schema file (JSON or YAML).",
    )
    parser.add_argument(
        "--format",
        type=str,
        default="json",
        choices=["json", "yaml"],
        help="Output format for the compiled descriptors (default: json).",
    )

    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only validate annotations without compiling.",
    )

    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--annotation-prefix",
        type=str,
        default=None,
        metavar="PREFIX",
        help="Namespace prefix of override annotations (default: 'x-relschema-').",
    )
    config_group.add_argument(
        "--id-column",
        type=str,
        default=None,
        metavar="NAME",
        help="Default identity column name (default: 'id').",
    )
    config_group.add_argument(
        "--virtual",
        action="append",
        default=[],
        metavar="NAME",
        help="Property name to exclude from every table (repeatable).",
    )

    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v INFO, -vv DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all log output.",
    )

    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, object]:
    """Build a settings override dictionary from CLI arguments."""
    overrides: Dict[str, object] = {}

    if args.annotation_prefix is not None:
        overrides["annotation_prefix"] = args.annotation_prefix

    if args.id_column is not None:
        overrides["default_id_column"] = args.id_column

    return overrides


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


def _run_validate_only(raw: Dict[str, Any], settings: Any, schema_path: Path) -> int:
    from relschema.validators import collect_table_names, validate_annotations

    result = validate_annotations(raw, settings)
    tables: List[str] = sorted(collect_table_names(raw, settings))

    print(f"\n{'='*50}")
    print("  Annotation Validation Report")
    print(f"{'='*50}")
    print(f"  File:     {schema_path.name}")
    print(f"  Tables:   {len(tables)}")
    print(f"  Valid:    {'Yes' if result.is_valid else 'No'}")
    if len(result):
        print()
        print(result.format_report())
    print(f"{'='*50}\n")

    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


def _run_compile(
    raw: Dict[str, Any],
    settings: Any,
    virtual_attributes: Sequence[str],
    output_format: str,
) -> int:
    from relschema.compiler import compile_schema
    from relschema.errors import CompileError
    from relschema.factory import DescriptorFactory
    from relschema.utils import Timer

    factory: DescriptorFactory = DescriptorFactory(virtual_attributes=virtual_attributes)
    try:
        with Timer("compile"):
            models = compile_schema(factory, raw, settings)
    except CompileError as exc:
        logger.error("Compilation failed: %s", exc)
        return EXIT_VALIDATION_ERROR

    payload: Dict[str, Any] = {
        name: descriptor.model_dump(mode="json", by_alias=True)
        for name, descriptor in models.items()
    }
    if output_format == "yaml":
        sys.stdout.write(yaml.safe_dump(payload, sort_keys=False, allow_unicode=True))
    else:
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    from relschema.loader import load_schema_file
    from relschema.models import CompilerSettings

    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose
    _setup_logging(verbosity)

    schema_path: Path = Path(args.schema).resolve()

    try:
        raw: Dict[str, Any] = load_schema_file(schema_path)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load schema: %s", exc)
        sys.exit(EXIT_INPUT_ERROR)

    try:
        settings = CompilerSettings(**_build_config_overrides(args))
    except PydanticValidationError as exc:
        logger.error("Invalid configuration override: %s", exc)
        sys.exit(EXIT_INPUT_ERROR)

    logger.info("Schema:  %s", schema_path)
    logger.info("Prefix:  %s", settings.annotation_prefix)

    if args.validate_only:
        sys.exit(_run_validate_only(raw, settings, schema_path))

    sys.exit(_run_compile(raw, settings, args.virtual, args.format))


__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_INPUT_ERROR",
]
