"""Command line interface for generating PlantUML ER diagrams from a catalog."""
from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .config import DEFAULT_PORT, DocumenterConfig, split_schemas
from .documenter import DbDocumenter, generate_puml
from .errors import DocumenterError
from .loader import load_snapshot
from .log import configure_logging

PASSWORD_ENV = "SCHEMA2PUML_PASSWORD"

EXIT_SUCCESS = 0
EXIT_CONFIGURATION_ERROR = 1
EXIT_DATABASE_ERROR = 2
EXIT_OUTPUT_ERROR = 3


@dataclass(frozen=True)
class CliOptions:
    input_path: Optional[Path]
    output_path: Optional[Path]
    schemas: Tuple[str, ...]
    config: Optional[DocumenterConfig]
    log_level: int = logging.WARNING


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="schema2puml", description=__doc__)
    source = parser.add_argument_group("catalog source")
    source.add_argument("--input", help="Catalog snapshot (YAML or JSON) to render instead of a live database.")
    source.add_argument("--host", help="Database hostname.")
    source.add_argument("--port", type=int, default=DEFAULT_PORT, help="Database port (default: %(default)s).")
    source.add_argument("--database", help="Database name.")
    source.add_argument("--username", help="Database username.")
    source.add_argument(
        "--password",
        help=f"Database password. Falls back to ${PASSWORD_ENV}, then an interactive prompt.",
    )
    source.add_argument(
        "--ssl",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use SSL for the database connection (default: enabled).",
    )
    parser.add_argument(
        "--schemas",
        type=split_schemas,
        default=[],
        help="Comma-separated list of schemas to document. Required for live databases; "
        "defaults to every schema of a snapshot.",
    )
    parser.add_argument("--output", default="-", help="Output path. Use '-' (default) for stdout.")
    parser.add_argument("--verbose", action="store_true", help="Log progress information.")
    parser.add_argument("--debug", action="store_true", help="Log debug information.")
    return parser


def resolve_password(
    value: Optional[str],
    environ: Mapping[str, str] = os.environ,
    prompt: Callable[[str], str] = getpass.getpass,
) -> str:
    if value:
        return value
    if environ.get(PASSWORD_ENV):
        return environ[PASSWORD_ENV]
    return prompt("Database password: ")


def parse_args(
    argv: Optional[Sequence[str]] = None,
    *,
    environ: Mapping[str, str] = os.environ,
    prompt: Callable[[str], str] = getpass.getpass,
) -> CliOptions:
    args = build_parser().parse_args(argv)
    output_path = None if args.output == "-" else Path(args.output)
    log_level = logging.DEBUG if args.debug else logging.INFO if args.verbose else logging.WARNING
    schemas = tuple(args.schemas)

    if args.input:
        input_path = Path(args.input)
        if not input_path.exists():
            raise DocumenterError(f"Input file not found: {input_path}")
        return CliOptions(input_path, output_path, schemas, None, log_level)

    missing = [f"--{name}" for name in ("host", "database", "username") if not getattr(args, name)]
    if missing:
        raise DocumenterError(
            "Either --input or a database connection is required; missing " + ", ".join(missing)
        )
    config = DocumenterConfig(
        schemas=schemas,
        database_host=args.host,
        database_name=args.database,
        username=args.username,
        password=resolve_password(args.password, environ, prompt),
        database_port=args.port,
        use_ssl=args.ssl,
    )
    return CliOptions(None, output_path, config.schemas, config, log_level)


def run(options: CliOptions) -> str:
    if options.input_path is None:
        return DbDocumenter(options.config).generate_puml()

    catalog = load_snapshot(options.input_path)
    schemas = options.schemas or tuple(catalog.schema_names)
    unknown = [name for name in schemas if name not in catalog.schema_names]
    if unknown:
        raise DocumenterError("Schema(s) not found in snapshot: " + ", ".join(unknown))
    return generate_puml(catalog, schemas)


def write_output(document: str, output_path: Optional[Path]) -> None:
    if output_path is None:
        sys.stdout.write(document)
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(document, encoding="utf-8")


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        options = parse_args(argv)
        configure_logging(level=options.log_level)
        document = run(options)
        write_output(document, options.output_path)
        return EXIT_SUCCESS
    except DocumenterError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        print("Use --help for usage information.", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except SQLAlchemyError as exc:
        print(f"Database error: {exc}", file=sys.stderr)
        print("Check connection parameters and database availability.", file=sys.stderr)
        return EXIT_DATABASE_ERROR
    except OSError as exc:
        print(f"Output error: {exc}", file=sys.stderr)
        return EXIT_OUTPUT_ERROR


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
