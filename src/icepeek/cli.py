from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

import polars as pl

from .core.errors import IcepeekError
from .core.schema import schema_history
from .io.config import InspectorSettings
from .io.errors import IoError
from .io.table import Table


def _print_frame(frame: pl.DataFrame) -> None:
    # Full output whatever the terminal width; pipes and narrow consoles included.
    with pl.Config(tbl_rows=-1, tbl_cols=-1, tbl_width_chars=10_000, fmt_str_lengths=10_000):
        print(frame)


def _common(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", help="Table directory or *.metadata.json file.")
    p.add_argument("--config", default=None, help="TOML settings file (default: icepeek.toml/pyproject.toml).")
    p.add_argument("-v", "--verbose", action="store_true", help="Log resolution steps to stderr.")


def _setup(args: argparse.Namespace) -> Table:
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    return Table.load(args.path, InspectorSettings.load(args.config))


def _snapshot_selector(table: Table, args: argparse.Namespace) -> int | None:
    """Turn --snapshot/--ref/--as-of-ms into a snapshot id (None for current)."""
    ref = getattr(args, "ref", None)
    as_of = getattr(args, "as_of_ms", None)
    if ref is None and as_of is None:
        return args.snapshot
    return table.plan(args.snapshot, ref=ref, as_of_ms=as_of).snapshot_id


def _cmd_snapshots(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="snapshots", description="List snapshot history.")
    _common(p)
    args = p.parse_args(argv)

    table = _setup(args)
    history = table.history()
    if history.is_empty():
        print("[INFO] Table has no snapshots.")
        return 0
    _print_frame(history)
    return 0


def _cmd_schema(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="schema", description="Show a schema version or schema evolution.")
    _common(p)
    p.add_argument("--snapshot", type=int, default=None, help="Schema in force at this snapshot.")
    p.add_argument("--diff", type=int, nargs=2, metavar=("OLD", "NEW"), help="Diff two schema ids.")
    p.add_argument("--history", action="store_true", help="Show every schema change in order.")
    args = p.parse_args(argv)

    table = _setup(args)
    if args.diff:
        old_id, new_id = args.diff
        d = table.schema_diff(old_id, new_id)
        print(f"schema {old_id} -> {new_id}")
        for line in d.summary_lines() or ["(no changes)"]:
            print(f"  {line}")
        return 0
    if args.history:
        for old, new, d in schema_history(table.metadata):
            print(f"schema {old.schema_id} -> {new.schema_id}")
            for line in d.summary_lines() or ["(no changes)"]:
                print(f"  {line}")
        return 0
    print(table.schema(args.snapshot))
    return 0


def _cmd_files(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="files", description="List data files of a snapshot.")
    _common(p)
    p.add_argument("--snapshot", type=int, default=None, help="Snapshot id (default: current).")
    p.add_argument("--all", action="store_true", help="Include deleted entries and delete files.")
    p.add_argument("--stats", action="store_true", help="Show per-column statistics instead.")
    args = p.parse_args(argv)

    table = _setup(args)
    if args.stats:
        _print_frame(table.column_stats(args.snapshot))
    else:
        _print_frame(table.files(args.snapshot, include_deleted=args.all or None))
    return 0


def _cmd_scan(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="scan", description="Read rows of a snapshot through a filter.")
    _common(p)
    which = p.add_mutually_exclusive_group()
    which.add_argument("--snapshot", type=int, default=None, help="Snapshot id (default: current).")
    which.add_argument("--ref", default=None, help="Branch or tag name.")
    which.add_argument("--as-of-ms", type=int, default=None, help="Time travel to a commit timestamp (ms).")
    p.add_argument("--filter", default=None, help="Filter, e.g. \"age > 30 AND city IN ('NYC','LA')\".")
    p.add_argument("--columns", default=None, help="Comma-separated output columns.")
    lim = p.add_mutually_exclusive_group()
    lim.add_argument("--limit", type=int, default=None, help="Maximum rows (default: page size).")
    lim.add_argument("--no-limit", action="store_true", help="Read every visible row.")
    p.add_argument("--count", action="store_true", help="Only count visible rows.")
    args = p.parse_args(argv)

    table = _setup(args)
    if args.no_limit:
        table.settings = replace(table.settings, no_limit=True)
    snapshot_id = _snapshot_selector(table, args)
    if args.count:
        print(table.count(snapshot_id, filter=args.filter))
        return 0
    columns = [c.strip() for c in args.columns.split(",") if c.strip()] if args.columns else None
    result = table.read(snapshot_id, filter=args.filter, columns=columns, limit=args.limit)
    _print_frame(result.frame)
    print(f"[INFO] {result.rows_matched} rows shown ({result.rows_scanned} scanned)")
    if result.has_more:
        print(f"[INFO] Limit of {result.limit} reached; use --limit N or --no-limit for more.")
    return 0


def _cmd_manifests(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="manifests", description="List the manifests of a snapshot.")
    _common(p)
    p.add_argument("--snapshot", type=int, default=None, help="Snapshot id (default: current).")
    p.add_argument("--ref", default=None, help="Branch or tag name.")
    args = p.parse_args(argv)

    table = _setup(args)
    _print_frame(table.manifest_list(_snapshot_selector(table, args)))
    return 0


def _cmd_properties(argv: list[str]) -> int:
    p = argparse.ArgumentParser(prog="properties", description="Show table properties.")
    _common(p)
    args = p.parse_args(argv)

    table = _setup(args)
    md = table.metadata
    print(f"table-uuid = {md.table_uuid}")
    print(f"format-version = {md.format_version}")
    print(f"location = {md.location}")
    for spec in md.partition_specs:
        print(str(spec))
    for order in md.sort_orders:
        print(str(order))
    for key, value in table.properties().items():
        print(f"{key} = {value}")
    return 0


_COMMANDS = {
    "snapshots": _cmd_snapshots,
    "schema": _cmd_schema,
    "files": _cmd_files,
    "manifests": _cmd_manifests,
    "scan": _cmd_scan,
    "properties": _cmd_properties,
}


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="icepeek", description="Read-only table metadata and data inspector.")
    sub = p.add_subparsers(dest="cmd", required=True)
    for name in _COMMANDS:
        sub.add_parser(name)
    return p


def run(argv: list[str]) -> int:
    """Dispatch one command; returns the process exit code."""
    if not argv:
        build_argparser().print_help()
        return 0
    cmd, rest = argv[0], argv[1:]
    handler = _COMMANDS.get(cmd)
    if handler is None:
        print(f"Unknown command: {cmd}", file=sys.stderr)
        return 2
    try:
        return handler(rest)
    except (IcepeekError, IoError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    raise SystemExit(run(argv))


if __name__ == "__main__":
    main()
