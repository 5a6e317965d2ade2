from __future__ import annotations

import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Any

import psycopg2

from ..config.loader import SyncConfig, require_shop
from ..db.batch_insert import BatchInsertError
from ..db.specifications import decode_specifications, import_specifications
from ..excel.reader import MissingColumnsError, SheetHeaderError, read_sheet
from ..excel.writer import write_grid
from ..logging.error_log import ErrorLogBuffer
from ..models.processing_result import ExportResult, ImportReport, ImportRun
from ..shopify.client import GraphQLError, ShopifyAdminClient, TransportError
from ..shopify.gateway import CatalogGateway
from .apply import apply_rows
from .decoder import decode_grid
from .discovery import DiscoveryError, discover_fields, index_fields
from .encoder import CORE_COLUMNS, REQUIRED_COLUMNS, encode_records
from .progress import ProgressTracker

"""Service orchestration for export, import and specification import.

run_import:
1. Read the sheet (header row 1) and check the minimum columns
2. Discover field definitions once (fatal on failure)
3. Decode every row; row problems become RowErrors
4. Apply decoded rows sequentially (skipped with --dry-run)
5. Write all RowErrors to the error log, flushed once per run

Fatal problems (unreadable file, bad header, discovery failure, export
listing failure) raise ProcessingError; nothing is applied in that case.
"""

__all__ = [
    "ProcessingError",
    "build_gateway",
    "run_export",
    "run_import",
    "run_specifications_import",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal error for a whole run."""


def build_gateway(cfg: SyncConfig) -> CatalogGateway:
    shop = require_shop(cfg)
    client = ShopifyAdminClient(shop.domain, shop.access_token, shop.api_version)
    return CatalogGateway(client, owner_type=cfg.owner_type)


def _read(path: Path, sheet: str | None, expected: Any):
    if not path.exists():
        raise ProcessingError(f"file not found: {path}")
    try:
        return read_sheet(path, sheet, expected_columns=expected)
    except (SheetHeaderError, MissingColumnsError) as e:
        raise ProcessingError(str(e)) from e
    except OSError as e:
        raise ProcessingError(f"cannot read {path}: {e}") from e


def _flush_errors(error_log: ErrorLogBuffer, source: Path, sheet: str, report: ImportReport) -> Path | None:
    error_log.extend_row_errors(source.name, sheet, report.errors)
    try:
        return error_log.flush()
    except OSError as e:
        # ログ書き込み失敗で処理全体は失敗させない
        logger.warning(f"error log flush failed: {e}")
        return None


def run_export(cfg: SyncConfig, gateway: CatalogGateway, target: Path | None = None) -> ExportResult:
    start = time.perf_counter()
    path = target or Path(cfg.export.target_file)
    records = []
    try:
        with ProgressTracker(None, description="Fetching collections", unit="collection") as progress:
            for record in gateway.iter_collections():
                records.append(record)
                progress.advance()
    except (TransportError, GraphQLError) as e:
        raise ProcessingError(f"listing collections failed: {e}") from e
    logger.info(f"fetched {len(records)} collections")

    grid = encode_records(records)
    try:
        write_grid(grid, path, cfg.export.sheet)
    except OSError as e:
        raise ProcessingError(f"cannot write {path}: {e}") from e

    rule_columns = sum(1 for h in grid.header[len(CORE_COLUMNS):] if h.startswith("Rule "))
    field_columns = len(grid.header) - len(CORE_COLUMNS) - rule_columns
    logger.info(f"wrote {path}")
    return ExportResult(
        path=path,
        records=len(grid.rows),
        field_columns=field_columns,
        rule_columns=rule_columns,
        elapsed_seconds=time.perf_counter() - start,
    )


def run_import(
    cfg: SyncConfig,
    gateway: CatalogGateway,
    source: Path | None = None,
    *,
    dry_run: bool = False,
    error_log: ErrorLogBuffer | None = None,
) -> ImportRun:
    start = time.perf_counter()
    error_log = error_log or ErrorLogBuffer()
    path = source or Path(cfg.import_.source_file)

    grid = _read(path, cfg.import_.sheet, REQUIRED_COLUMNS)
    logger.info(f"read {len(grid.rows)} rows from {path.name} [{grid.sheet_name}]")

    try:
        known = index_fields(discover_fields(gateway, cfg.owner_type))
    except DiscoveryError as e:
        raise ProcessingError(str(e)) from e

    decoded = decode_grid(grid, known, invalid_cells=cfg.import_.invalid_cells)
    for err in decoded.errors:
        logger.warning(str(err))

    if dry_run:
        logger.info(f"dry-run: {len(decoded.rows)} rows decoded, nothing applied")
        report = ImportReport()
    else:
        with ProgressTracker(len(decoded.rows)) as progress:
            report = apply_rows(gateway, decoded.rows, on_row=lambda o: progress.advance(o.success))

    report = replace(
        report,
        errors=tuple(decoded.errors) + report.errors,
        elapsed_seconds=time.perf_counter() - start,
    )
    log_path = _flush_errors(error_log, path, grid.sheet_name, report)
    if log_path is not None:
        logger.info(f"error log: {log_path}")
    return ImportRun(
        source=path,
        sheet=grid.sheet_name,
        rows_read=len(grid.rows),
        report=report,
        error_log=log_path,
        dry_run=dry_run,
    )


def run_specifications_import(
    cfg: SyncConfig,
    cursor: Any,
    source: Path | None = None,
    *,
    dry_run: bool = False,
    error_log: ErrorLogBuffer | None = None,
) -> ImportRun:
    """Import the specification sheet in one transaction (per-row savepoints inside).

    With ``dry_run`` (or no cursor) the sheet is only decoded.
    """
    start = time.perf_counter()
    error_log = error_log or ErrorLogBuffer()
    settings = cfg.specifications
    path = source or Path(settings.source_file)

    grid = _read(path, settings.sheet, [settings.sku_column])
    logger.info(f"read {len(grid.rows)} rows from {path.name} [{grid.sheet_name}]")

    if dry_run or cursor is None:
        _, errors = decode_specifications(grid, settings.sku_column)
        report = ImportReport().with_errors(errors)
        dry_run = True
    else:
        try:
            cursor.execute("BEGIN")
            report = import_specifications(cursor, grid, settings.table, settings.sku_column)
            cursor.execute("COMMIT")
        except (psycopg2.Error, BatchInsertError, ValueError) as e:
            try:
                cursor.execute("ROLLBACK")
            except psycopg2.Error:
                logger.debug("rollback failed", exc_info=True)
            raise ProcessingError(f"specification import failed: {e}") from e

    report = replace(report, elapsed_seconds=time.perf_counter() - start)
    log_path = _flush_errors(error_log, path, grid.sheet_name, report)
    return ImportRun(
        source=path,
        sheet=grid.sheet_name,
        rows_read=len(grid.rows),
        report=report,
        error_log=log_path,
        dry_run=dry_run,
    )
