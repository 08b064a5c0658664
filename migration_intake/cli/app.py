from __future__ import annotations

import argparse
import math
import os
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any

import pandas as pd
import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportSettings, load_config
from ..db.memory_store import InMemoryRecordStore
from ..db.store import PostgresRecordStore
from ..excel.grid import ABSENT, densify, extract_row
from ..excel.locator import StructureError, locate_structure
from ..excel.reader import ImportFatalError, read_worksheet
from ..logging.init import enable_debug, log_summary, setup_logging
from ..logging.issue_log import IssueLogBuffer
from ..models.processing_result import PersistResult
from ..schemas import ImportType, get_schema
from ..services.persistence import persist_records
from ..services.pipeline import ImportResult, ImportStatus, run_import
from ..services.progress import ImportProgressBar
from ..services.summary import render_import_summary, render_persist_summary
from ..services.templates import describe_rules, render_rules, write_template

"""CLI entrypoint.

Flow:
- Load .env and the optional YAML config
- Import one worksheet, classify rows, write the review log, print SUMMARY
- With --commit, persist the valid rows to PostgreSQL (the in-memory store
  when DISABLE_DB_CONNECT=1; a failed connection is a failed first batch)
- --write-template / --list-rules print or write schema-derived help and exit

Exit codes: 0 clean, 1 fatal, 2 partial (rejected rows or failed batch),
3 cancelled.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_CANCELLED = 3

INSPECT_ROWS = 15
MAX_LISTED_ISSUES = 20


@contextmanager
def _db_connection(settings: ImportSettings) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Provide a psycopg2 cursor inside one transaction.

    Connection parameters resolve in this order:
        1. DATABASE_URL / PGDSN (the .env file overrides the process environment)
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. the config file's database section
    """
    db_cfg = settings.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    try:
        conn.autocommit = False
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; .env values win over the environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="migration-intake",
        description="Import and validate a migration-tracking workbook",
    )
    p.add_argument("workbook", type=Path, nargs="?", help="Workbook (.xlsx) to import")
    p.add_argument(
        "--type",
        dest="import_type",
        default=None,
        choices=[t.value for t in ImportType],
        help="Import type",
    )
    p.add_argument("--sheet", default=None, help="Worksheet name (default: first worksheet)")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--commit", action="store_true", help="Persist valid rows after validation")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print first rows, header row and column map then exit")
    p.add_argument("--write-template", type=Path, default=None, metavar="PATH",
                   help="Write an empty import workbook for --type to PATH then exit")
    p.add_argument("--list-rules", action="store_true",
                   help="Print required/optional fields and validation rules (all types unless --type) then exit")
    args = p.parse_args(argv)
    if args.list_rules:
        return args
    if args.import_type is None:
        p.error("--type is required")
    if args.write_template is None and args.workbook is None:
        p.error("a workbook is required unless --write-template or --list-rules is given")
    return args


def _inspect_data(path: Path, import_type: str, sheet: str | None) -> int:
    schema = get_schema(import_type)
    try:
        worksheet = read_worksheet(path, sheet)
    except ImportFatalError as e:
        print(f"inspect: cannot read workbook: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name} SHEET: {worksheet.sheet_name} TYPE: {schema.import_type.value}")
    rows = [extract_row(r.cells) for r in worksheet.rows]
    preview = pd.DataFrame(
        [densify(row) for row in rows[:INSPECT_ROWS]],
        index=[r.row_number for r in worksheet.rows[:INSPECT_ROWS]],
    )
    print(preview.fillna("").replace(ABSENT, "").to_string(header=False))
    try:
        location = locate_structure(rows, schema, [r.row_number for r in worksheet.rows])
    except StructureError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"  start_row={location.start_row_number} header_row={location.header_row_number}")
    print(f"  header: {' | '.join(densify(rows[location.header_index]))}")
    known = {f.name for f in schema.fields}
    for name, index in sorted(location.column_map.items(), key=lambda kv: kv[1]):
        marker = "" if name in known else " (ignored)"
        print(f"    col {index}: {name}{marker}")
    missing = [f.name for f in schema.fields if f.name not in location.column_map]
    if missing:
        print(f"  unmapped fields: {', '.join(missing)}")
    return EXIT_SUCCESS_ALL


def _list_rules(import_type: str | None) -> int:
    types = [ImportType(import_type)] if import_type else list(ImportType)
    for i, t in enumerate(types):
        if i:
            print()
        print("\n".join(render_rules(describe_rules(get_schema(t)))))
    return EXIT_SUCCESS_ALL


def _write_template(logger: Any, import_type: str, path: Path) -> int:
    try:
        write_template(import_type, path)
    except OSError as e:
        logger.error(f"template: cannot write {path}: {e}")
        return EXIT_FATAL
    logger.info(f"template for {import_type} written to {path}")
    return EXIT_SUCCESS_ALL


@contextmanager
def _sigint_sets(event: threading.Event) -> Iterator[None]:
    """Route Ctrl-C to ``event`` while importing (main thread only)."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGINT, lambda signum, frame: event.set())
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _report_issues(logger: Any, result: ImportResult) -> None:
    rejected = result.invalid + result.duplicates
    for issue in sorted(rejected, key=lambda i: i.row_number)[:MAX_LISTED_ISSUES]:
        logger.warning(issue.describe())
    if len(rejected) > MAX_LISTED_ISSUES:
        logger.warning(f"... {len(rejected) - MAX_LISTED_ISSUES} more rejected rows in the review log")
    if result.flagged:
        logger.info(f"{len(result.flagged)} valid rows flagged for review")


def _persist(logger: Any, result: ImportResult, settings: ImportSettings) -> PersistResult:
    with ImportProgressBar(description="Saving") as bar:
        if os.getenv("DISABLE_DB_CONNECT") == "1":
            logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> in-memory store")
            return persist_records(result.valid, InMemoryRecordStore(), batch_size=settings.batch_size, progress=bar)
        persisted: PersistResult | None = None
        try:
            with _db_connection(settings) as cur:
                persisted = persist_records(
                    result.valid, PostgresRecordStore(cur), batch_size=settings.batch_size, progress=bar
                )
                logger.info(f"mode=live table={get_schema(result.import_type).table_name}")
        except psycopg2.Error as db_e:
            if persisted is not None:
                # transaction rolled back: nothing from this run is stored
                return replace(
                    persisted, saved=0, skipped=0, batches_committed=0,
                    failed_batch=persisted.total_batches or 1, error=f"commit failed: {db_e}",
                )
            total = len(result.valid)
            return PersistResult(
                saved=0, skipped=0, total_records=total, batches_committed=0,
                total_batches=max(1, math.ceil(total / settings.batch_size)),
                failed_batch=1, error=f"connection failed: {db_e}",
            )
        return persisted


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None reads sys.argv; an explicit [] must not pick up the test runner's arguments.
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        enable_debug()
        logger.debug("debug mode enabled")

    if args.list_rules:
        return _list_rules(args.import_type)
    if args.write_template is not None:
        return _write_template(logger, args.import_type, args.write_template)

    _load_env_file(Path(".env"), override=True)
    try:
        if args.config is not None:
            settings = load_config(args.config)
        else:
            settings = load_config(DEFAULT_CONFIG_PATH, required=False)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(args.workbook, args.import_type, args.sheet)

    issue_log = IssueLogBuffer(settings.logs_directory)
    file_name = args.workbook.name
    logger.info(f"Importing {file_name} as {args.import_type}")

    cancel = threading.Event()
    try:
        with _sigint_sets(cancel), ImportProgressBar(description="Importing") as bar:
            result = run_import(
                args.workbook, args.import_type, settings=settings, progress=bar, cancel=cancel, sheet=args.sheet
            )
    except StructureError as e:
        logger.error(f"structure: {e}")
        issue_log.add(file_name, args.import_type, -1, "STRUCTURE_ERROR", str(e))
        issue_log.flush()
        return EXIT_FATAL
    except ImportFatalError as e:
        logger.error(f"workbook: {e}")
        return EXIT_FATAL

    logger.info(
        f"sheet={result.sheet_name} start_row={result.start_row} header_row={result.header_row} "
        f"import_set={result.import_set}"
    )
    for bucket in (result.invalid, result.duplicates, result.flagged):
        issue_log.extend_from_issues(file_name, args.import_type, bucket)
    _report_issues(logger, result)
    log_summary(render_import_summary(result)[len("SUMMARY "):])

    if result.status is ImportStatus.CANCELLED:
        logger.warning("import cancelled; nothing persisted")
        _flush_issue_log(logger, issue_log)
        return EXIT_CANCELLED

    persist_failed = False
    if args.commit:
        persisted = _persist(logger, result, settings)
        if not persisted.ok:
            persist_failed = True
            logger.error(
                f"batch {persisted.failed_batch}/{persisted.total_batches} failed: {persisted.error} "
                f"({persisted.saved} saved before the failure)"
            )
            issue_log.add_batch_failure(file_name, args.import_type, persisted)
        log_summary(render_persist_summary(persisted)[len("SUMMARY "):])
    elif result.valid:
        logger.info(f"{len(result.valid)} valid rows not saved (use --commit)")

    _flush_issue_log(logger, issue_log)
    if persist_failed or result.has_rejections:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _flush_issue_log(logger: Any, issue_log: IssueLogBuffer) -> None:
    try:
        path = issue_log.flush()
    except OSError as e:
        logger.warning(f"could not write review log: {e}")
        return
    if path is not None:
        logger.info(f"review log: {path}")
