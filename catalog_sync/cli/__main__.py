from __future__ import annotations

import argparse
import os
import sys
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from catalog_sync.config.loader import DEFAULT_CONFIG_PATH, ConfigError, SyncConfig, load_config
from catalog_sync.logging.init import log_summary, setup_logging
from catalog_sync.services.orchestrator import (
    ProcessingError,
    build_gateway,
    run_export,
    run_import,
    run_specifications_import,
)
from catalog_sync.services.summary import render_export_summary_line, render_summary_line

"""CLI entrypoint.

    catalog-sync export        collections -> spreadsheet
    catalog-sync import        spreadsheet -> collections
    catalog-sync import-specs  specification sheet -> PostgreSQL

Exit codes: 0 all rows succeeded, 2 finished with row errors, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _resolve_dsn(cfg: SyncConfig) -> str:
    """接続情報の優先順位:
        1. `.env` / 環境変数 DATABASE_URL / PGDSN (DSN 全体)
        2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config/sync.yml の database セクション (不足分のフォールバック)
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_cursor(cfg: SyncConfig):  # pragma: no cover (thin wrapper; tested via integration)
    conn = psycopg2.connect(_resolve_dsn(cfg))
    try:
        conn.autocommit = False  # 明示トランザクション境界 (orchestrator が BEGIN/COMMIT 実行)
        cur = conn.cursor()
        try:
            yield cur
        finally:
            cur.close()
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with override so its values win over the existing environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="catalog-sync", description="Collection catalog <-> spreadsheet sync")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML path")
    sub = p.add_subparsers(dest="command", required=True)

    exp = sub.add_parser("export", help="Write all collections to a spreadsheet")
    exp.add_argument("--file", type=Path, help="Target .xlsx (default: export.target_file)")

    imp = sub.add_parser("import", help="Create/update collections from a spreadsheet")
    imp.add_argument("--file", type=Path, help="Source .xlsx (default: import.source_file)")
    imp.add_argument("--dry-run", action="store_true", help="Decode and report only; apply nothing")

    spec = sub.add_parser("import-specs", help="Import a specification sheet into PostgreSQL")
    spec.add_argument("--file", type=Path, help="Source .xlsx (default: specifications.source_file)")
    spec.add_argument("--dry-run", action="store_true", help="Decode and report only; no database writes")
    return p.parse_args(argv)


def _exit_code(run) -> int:
    return EXIT_SUCCESS_ALL if run.report.success else EXIT_PARTIAL_FAILURE


def main(argv: list[str] | None = None) -> int:
    # NOTE: 空リスト [] のときに sys.argv[1:] が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)

    # .env を最優先で読み込む (接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        if args.command == "export":
            result = run_export(cfg, build_gateway(cfg), args.file)
            log_summary(render_export_summary_line(result)[len("SUMMARY "):])
            return EXIT_SUCCESS_ALL

        if args.command == "import":
            run = run_import(cfg, build_gateway(cfg), args.file, dry_run=args.dry_run)
        elif args.dry_run:
            run = run_specifications_import(cfg, None, args.file, dry_run=True)
        else:
            try:
                with _db_cursor(cfg) as cur:
                    run = run_specifications_import(cfg, cur, args.file)
            except psycopg2.OperationalError as e:
                logger.error(f"database connection failed: {e}")
                return EXIT_FATAL
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    # log_summary が "SUMMARY " を付けるので本文のみ渡す
    log_summary(render_summary_line(run.report, rows=run.rows_read)[len("SUMMARY "):])
    return _exit_code(run)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
