"""Assessment data access helpers.

Keeps SQL out of route handlers. Step data lives inside the assessment's
aggregate `data` JSON column, one entry per step key; an upsert replaces the
entry for that step and leaves every other step untouched.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import text as sql_text

from aria.db.base import get_engine

logger = logging.getLogger(__name__)

_COLUMNS = "assessment_id, owner_id, evaluation_type, status, data, created_at, updated_at"


def now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _decode_payload(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw or "{}")
    except (TypeError, json.JSONDecodeError):
        logger.error("assessment_payload_corrupt; treating as empty", exc_info=True)
        return {}
    return data if isinstance(data, dict) else {}


def _row_to_record(row: Any) -> Dict[str, Any]:
    return {
        "id": str(row[0]),
        "owner_id": row[1],
        "evaluation_type": row[2],
        "status": row[3],
        "data": _decode_payload(row[4]),
        "created_at": row[5],
        "updated_at": row[6],
    }


def create_assessment(evaluation_type: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
    assessment_id = str(uuid.uuid4())
    ts = now_rfc3339()
    eng = get_engine()
    with eng.begin() as conn:
        conn.execute(
            sql_text(
                """
                INSERT INTO assessment (assessment_id, owner_id, evaluation_type, status, data, created_at, updated_at)
                VALUES (:aid, :owner, :etype, 'draft', '{}', :ts, :ts)
                """
            ),
            {"aid": assessment_id, "owner": owner_id, "etype": evaluation_type, "ts": ts},
        )
    logger.info("assessment_inserted id=%s type=%s", assessment_id, evaluation_type)
    return {
        "id": assessment_id,
        "owner_id": owner_id,
        "evaluation_type": evaluation_type,
        "status": "draft",
        "data": {},
        "created_at": ts,
        "updated_at": ts,
    }


def get_assessment(assessment_id: str) -> Optional[Dict[str, Any]]:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(f"SELECT {_COLUMNS} FROM assessment WHERE assessment_id = :aid"),
            {"aid": assessment_id},
        ).fetchone()
    return _row_to_record(row) if row else None


def get_step_data(assessment_id: str, step_key: str) -> Optional[Any]:
    record = get_assessment(assessment_id)
    if record is None:
        return None
    return record["data"].get(step_key)


def upsert_step(assessment_id: str, step_key: str, data: Any) -> Optional[Dict[str, Any]]:
    """Replace one step's value; return the updated record or None if absent.

    The read-modify-write runs in one transaction. Concurrent writers to the
    same assessment resolve as last-write-wins.
    """
    eng = get_engine()
    with eng.begin() as conn:
        row = conn.execute(
            sql_text(f"SELECT {_COLUMNS} FROM assessment WHERE assessment_id = :aid"),
            {"aid": assessment_id},
        ).fetchone()
        if row is None:
            return None
        record = _row_to_record(row)
        record["data"][step_key] = data
        record["updated_at"] = now_rfc3339()
        if record["status"] == "draft":
            record["status"] = "in_progress"
        conn.execute(
            sql_text(
                """
                UPDATE assessment
                SET data = :data, status = :status, updated_at = :ts
                WHERE assessment_id = :aid
                """
            ),
            {
                "data": json.dumps(record["data"]),
                "status": record["status"],
                "ts": record["updated_at"],
                "aid": assessment_id,
            },
        )
    return record


def update_status(assessment_id: str, status: str) -> Optional[Dict[str, Any]]:
    eng = get_engine()
    ts = now_rfc3339()
    with eng.begin() as conn:
        result = conn.execute(
            sql_text("UPDATE assessment SET status = :status, updated_at = :ts WHERE assessment_id = :aid"),
            {"status": status, "ts": ts, "aid": assessment_id},
        )
        if not result.rowcount:
            return None
    return get_assessment(assessment_id)


def db_ping() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(sql_text("SELECT 1"))
        return True
    except Exception:
        logger.error("db_ping_failed", exc_info=True)
        return False


__all__ = [
    "now_rfc3339",
    "create_assessment",
    "get_assessment",
    "get_step_data",
    "upsert_step",
    "update_status",
    "db_ping",
]
