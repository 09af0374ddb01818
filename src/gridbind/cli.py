from __future__ import annotations

import argparse
from collections.abc import Callable
import json
import logging
from pathlib import Path

from .binding.importer import import_query_result
from .binding.registry import BindingRegistry
from .config import GridBindConfig, load_config
from .core.geometry import Rectangle
from .core.staging import StagingArea
from .query import StaticConnectionCatalog
from .sources.sqlalchemy_source import SqlAlchemyConnection
from .workbook import open_openpyxl_document

logger = logging.getLogger(__name__)

Handler = Callable[[argparse.Namespace, GridBindConfig], int]


def main(argv: list[str] | None = None) -> int:
    """Run the gridbind command line.

    Args:
        argv: Optional CLI arguments for testing.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    config = _resolve_config(args)
    _configure_logging(config)
    handler: Handler = args.handler
    try:
        return handler(args, config)
    except Exception:
        logger.exception("gridbind %s failed.", args.command)
        return 1


def _configure_logging(config: GridBindConfig) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=config.log_level.upper(),
        handlers=handlers,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _connection_arg(value: str) -> tuple[str, str]:
    connection_id, sep, url = value.partition("=")
    if not sep or not connection_id or not url:
        raise argparse.ArgumentTypeError("Expected ID=URL.")
    return connection_id, url


def _mapped_indexes_arg(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Expected comma-separated integers.") from exc


def _range_arg(value: str) -> Rectangle:
    sheet, sep, ref = value.rpartition("!")
    if not sep or not sheet:
        raise argparse.ArgumentTypeError("Expected SHEET!A1:B2.")
    try:
        return Rectangle.from_a1(sheet.strip("'"), ref)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="JSON configuration file.")
    common.add_argument("--registry", type=Path, help="Binding registry JSON file.")
    common.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    common.add_argument("--log-file", type=Path, help="Optional log file path.")

    parser = argparse.ArgumentParser(
        prog="gridbind", description="Bind query results to spreadsheet tables."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    import_parser = sub.add_parser(
        "import", parents=[common], help="Import a query result as a bound table."
    )
    import_parser.add_argument("book", type=Path, help="Workbook path (.xlsx/.xlsm).")
    import_parser.add_argument(
        "--connection",
        type=_connection_arg,
        required=True,
        help="Upstream connection as ID=SQLALCHEMY_URL.",
    )
    import_parser.add_argument("--query", required=True, help="Query text.")
    import_parser.add_argument("--sheet", help="Target sheet (default: first sheet).")
    import_parser.add_argument("--cell", default="A1", help="Top-left cell of the table.")
    import_parser.add_argument("--schema", help="Upstream schema name.")
    import_parser.add_argument("--table-name", help="Upstream table name.")
    import_parser.add_argument(
        "--no-column-names",
        action="store_true",
        help="Use Column1, Column2, ... instead of result column names.",
    )
    import_parser.add_argument(
        "--synthetic-key", action="store_true", help="Prepend a row number column."
    )
    import_parser.add_argument(
        "--summary-row", action="store_true", help="Show a totals row."
    )
    import_parser.add_argument("--out", type=Path, help="Output workbook path.")
    import_parser.set_defaults(handler=_run_import)

    refresh_parser = sub.add_parser(
        "refresh", parents=[common], help="Refresh every binding of a workbook."
    )
    refresh_parser.add_argument("book", type=Path, help="Workbook path.")
    refresh_parser.add_argument(
        "--connection",
        type=_connection_arg,
        action="append",
        default=[],
        help="Upstream connection as ID=SQLALCHEMY_URL (repeatable).",
    )
    refresh_parser.add_argument("--out", type=Path, help="Output workbook path.")
    refresh_parser.set_defaults(handler=_run_refresh)

    list_parser = sub.add_parser("list", parents=[common], help="List bindings as JSON.")
    list_parser.add_argument("--document-id", help="Only bindings of this document.")
    list_parser.set_defaults(handler=_run_list)

    stage_parser = sub.add_parser(
        "stage", parents=[common], help="Copy a range onto a visible scratch sheet."
    )
    stage_parser.add_argument("book", type=Path, help="Workbook path.")
    stage_parser.add_argument(
        "--range", dest="source", type=_range_arg, required=True, help="SHEET!A1:B2"
    )
    stage_parser.add_argument(
        "--variant",
        choices=["copy", "synthetic_key", "mapped"],
        default="copy",
        help="Staging variant.",
    )
    stage_parser.add_argument(
        "--map", dest="mapped_indexes", type=_mapped_indexes_arg, help="e.g. 3,0,1"
    )
    stage_parser.add_argument(
        "--header", action="store_true", help="First row holds column names."
    )
    stage_parser.add_argument("--crop", action="store_true", help="Crop to non-empty cells.")
    stage_parser.add_argument(
        "--skip-empty-columns", action="store_true", help="Skip columns without data."
    )
    stage_parser.add_argument("--row-limit", type=int, default=0, help="0 = unlimited.")
    stage_parser.add_argument("--out", type=Path, help="Output workbook path.")
    stage_parser.set_defaults(handler=_run_stage)
    return parser


def _resolve_config(args: argparse.Namespace) -> GridBindConfig:
    config = load_config(args.config)
    updates: dict[str, object] = {}
    if args.registry is not None:
        updates["registry_path"] = args.registry
    if args.log_level:
        updates["log_level"] = args.log_level
    if args.log_file is not None:
        updates["log_file"] = args.log_file
    connections = getattr(args, "connection", None)
    if connections:
        pairs = connections if isinstance(connections, list) else [connections]
        updates["connections"] = {**config.connections, **dict(pairs)}
    return config.model_copy(update=updates)


def _catalog(config: GridBindConfig) -> StaticConnectionCatalog:
    return StaticConnectionCatalog(
        [SqlAlchemyConnection(cid, url) for cid, url in config.connections.items()]
    )


def _run_import(args: argparse.Namespace, config: GridBindConfig) -> int:
    catalog = _catalog(config)
    connection_id, _ = args.connection
    connection = catalog.get(connection_id)
    if connection is None:
        logger.error("Connection %s is not configured.", connection_id)
        return 1
    registry = BindingRegistry.load(config.registry_path, catalog)
    with open_openpyxl_document(
        args.book, create=True, compatibility_mode=config.compatibility_mode
    ) as document:
        sheet = args.sheet or document.sheet_names()[0]
        descriptor = import_query_result(
            document,
            connection,
            args.query,
            Rectangle.from_a1(sheet, args.cell),
            registry=registry,
            schema_name=args.schema,
            table_name=args.table_name,
            import_column_names=not args.no_column_names,
            synthetic_key=args.synthetic_key,
            add_summary_row=args.summary_row,
            table_style=config.table_style,
        )
        if descriptor is None:
            return 1
        document.save(args.out or args.book)
    registry.save(config.registry_path)
    print(descriptor.record.model_dump_json(indent=2))
    return 0


def _run_refresh(args: argparse.Namespace, config: GridBindConfig) -> int:
    catalog = _catalog(config)
    registry = BindingRegistry.load(config.registry_path, catalog)
    with open_openpyxl_document(
        args.book, compatibility_mode=config.compatibility_mode
    ) as document:
        registry.restore_all(document, catalog)
        outcome = registry.refresh_all(document, connection_ids=config.connections.keys())
        document.save(args.out or args.book)
    registry.save(config.registry_path)
    print(json.dumps(outcome, indent=2))
    return 0 if all(outcome.values()) else 1


def _run_list(args: argparse.Namespace, config: GridBindConfig) -> int:
    registry = BindingRegistry.load(config.registry_path)
    descriptors = (
        registry.find_all(args.document_id) if args.document_id else list(registry)
    )
    records = [descriptor.record.model_dump(mode="json") for descriptor in descriptors]
    print(json.dumps(records, indent=2))
    return 0


def _run_stage(args: argparse.Namespace, config: GridBindConfig) -> int:
    with open_openpyxl_document(
        args.book, compatibility_mode=config.compatibility_mode
    ) as document:
        staging = StagingArea(
            document,
            args.source,
            variant=args.variant,
            crop_to_non_empty=args.crop,
            skip_empty_columns=args.skip_empty_columns,
            hide_and_delete=False,
            row_limit=args.row_limit,
            first_row_contains_column_names=args.header,
            mapped_indexes=args.mapped_indexes,
        )
        with staging:
            staged = staging.range
            if staged is None:
                logger.warning("Nothing was staged from %s.", args.source)
                return 1
            print(str(staged))
        document.save(args.out or args.book)
    return 0


__all__ = ["main"]
