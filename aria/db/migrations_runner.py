"""Lightweight SQL migrations runner.

Applies .sql files in lexical order from `migrations/`, skipping rollback
scripts, and records applied filenames in a file-backed journal so a file
is never applied twice. Intended for local development and CI.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def _iter_sql_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.glob("*.sql")):
        if "rollback" in p.name.lower():
            continue
        yield p


def _exec_sql_compat(conn: Connection, sql: str) -> None:
    """Execute a multi-statement SQL file.

    SQLite's DB-API refuses several statements per execute(), so split on
    ';' there; other dialects receive the script as-is.
    """
    name = (getattr(conn.dialect, "name", "") or "").lower()
    if "sqlite" not in name:
        conn.exec_driver_sql(sql)
        return
    for stmt in sql.split(";"):
        s = stmt.strip()
        if not s:
            continue
        lines = [ln for ln in s.splitlines() if not ln.strip().startswith("--")]
        s = "\n".join(lines).strip()
        if not s or s.upper() in {"BEGIN", "COMMIT", "END"}:
            continue
        conn.exec_driver_sql(s)


def _load_journal(journal_path: Path) -> list[dict]:
    if not journal_path.exists():
        return []
    try:
        data = json.loads(journal_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.error("migration_journal_parse_failed path=%s", str(journal_path), exc_info=True)
        return []
    return [e for e in data if isinstance(e, dict)] if isinstance(data, list) else []


def apply_migrations(
    engine: Engine,
    migrations_dir: str | os.PathLike[str] = DEFAULT_MIGRATIONS_DIR,
    journal_path: str | os.PathLike[str] | None = None,
    force: bool = False,
) -> list[str]:
    """Apply pending migrations and return the filenames applied.

    With `force`, the journal is ignored and every file runs again; the
    migration files are written to be re-runnable.
    """
    root = Path(migrations_dir)
    if not root.exists():
        logger.warning("migrations_dir_missing path=%s", str(root))
        return []

    journal = Path(journal_path) if journal_path else root / "_journal.json"
    entries = _load_journal(journal)
    journaled = {Path(str(e.get("filename", ""))).name for e in entries}
    applied = set() if force else journaled
    newly_applied: list[str] = []

    with engine.begin() as conn:
        for sql_path in _iter_sql_files(root):
            fname = sql_path.name
            if fname in applied:
                continue
            sql = sql_path.read_text(encoding="utf-8")
            if not sql.strip():
                continue
            _exec_sql_compat(conn, sql)
            newly_applied.append(fname)
            logger.info("migration_applied file=%s", fname)
            if fname in journaled:
                continue
            entries.append({
                "filename": f"migrations/{fname}",
                "applied_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
            })
            _atomic_write_json(journal, entries)

    return newly_applied


def _atomic_write_json(path: Path, content: list[dict]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(content, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp_path, path)
