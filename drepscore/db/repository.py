"""Persistence for sync output.

Every write is an idempotent upsert keyed on a natural key, so retries and
out-of-order completion of parallel branches are safe:

    dreps               id
    drep_score_history  (drep_id, snapshot_date)
    sync_log            id

Only whitelisted columns are written; anything else in a row is ignored.
Rows are written in batches; a failing batch counts all of its rows as
errors and the remaining batches still run.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

import pymysql

from ..constants import ERROR_SUMMARY_MAX_CHARS, UPSERT_BATCH_SIZE
from .client import check_connection, dolt_commit, execute_many, execute_query

logger = logging.getLogger(__name__)


def _json_default(obj: Any) -> Any:
    """Handle non-serializable objects for JSON encoding."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialize_json(value: Any) -> str | None:
    """Serialize a value to JSON string for storage."""
    if value is None:
        return None
    return json.dumps(value, default=_json_default, sort_keys=True)


def deserialize_json(value: str | bytes | None) -> Any:
    """Deserialize a JSON string from storage."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value  # Already parsed by driver


@dataclass(frozen=True)
class TableSpec:
    """Writable columns and conflict key of one table."""

    name: str
    key: tuple[str, ...]
    columns: frozenset[str]
    json_columns: frozenset[str] = frozenset()


ALIGNMENT_COLUMNS = frozenset(
    {
        "alignment_treasury_conservative",
        "alignment_treasury_growth",
        "alignment_decentralization",
        "alignment_security",
        "alignment_innovation",
        "alignment_transparency",
        "last_vote_time",
    }
)

TABLES: dict[str, TableSpec] = {
    "dreps": TableSpec(
        name="dreps",
        key=("id",),
        columns=frozenset(
            {
                "id",
                "metadata",
                "info",
                "score",
                "participation_rate",
                "rationale_rate",
                "rationale_rate_raw",
                "reliability_score",
                "reliability_streak",
                "reliability_recency",
                "reliability_longest_gap",
                "reliability_tenure",
                "deliberation_modifier",
                "effective_participation",
                "size_tier",
                "profile_completeness",
                "anchor_url",
                "anchor_hash",
            }
        )
        | ALIGNMENT_COLUMNS,
        json_columns=frozenset({"metadata", "info"}),
    ),
    "drep_score_history": TableSpec(
        name="drep_score_history",
        key=("drep_id", "snapshot_date"),
        columns=frozenset(
            {
                "drep_id",
                "snapshot_date",
                "epoch_no",
                "score",
                "effective_participation",
                "rationale_rate",
                "reliability_score",
                "profile_completeness",
            }
        ),
    ),
    "sync_log": TableSpec(
        name="sync_log",
        key=("id",),
        columns=frozenset(
            {
                "id",
                "sync_type",
                "status",
                "success",
                "started_at",
                "finished_at",
                "duration_ms",
                "phase_timings",
                "phase_errors",
                "record_counts",
                "error_message",
            }
        ),
        json_columns=frozenset({"phase_timings", "phase_errors", "record_counts"}),
    ),
}


def get_table_spec(table: str, conflict_key: Sequence[str]) -> TableSpec:
    """Validate table name and conflict key against the whitelist. Raises ValueError."""
    spec = TABLES.get(table)
    if spec is None:
        raise ValueError(f"Invalid table name: {table!r}. Must be one of: {sorted(TABLES)}")
    if tuple(conflict_key) != spec.key:
        raise ValueError(f"Conflict key for {table} must be {spec.key}, got {tuple(conflict_key)}")
    return spec


@dataclass
class UpsertResult:
    """Outcome of one upsert call."""

    success: int = 0
    errors: int = 0
    messages: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.errors

    @property
    def error_rate(self) -> float:
        return self.errors / self.total if self.total else 0.0

    def merge(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            success=self.success + other.success,
            errors=self.errors + other.errors,
            messages=self.messages + other.messages,
        )


def partition_rows(spec: TableSpec, rows: Iterable[Mapping[str, Any]]) -> tuple[list[dict], UpsertResult]:
    """Drop unknown columns; rows missing a key column become errors."""
    valid: list[dict] = []
    rejected = UpsertResult()
    for row in rows:
        record = {k: v for k, v in row.items() if k in spec.columns}
        missing = [k for k in spec.key if record.get(k) is None]
        if missing:
            rejected.errors += 1
            rejected.messages.append(f"{spec.name}: row missing key column(s) {missing}")
            continue
        valid.append(record)
    return valid, rejected


class SyncStore(ABC):
    """Persistence contract used by the orchestrator."""

    @abstractmethod
    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], conflict_key: Sequence[str]) -> UpsertResult:
        """Insert or update rows keyed on conflict_key."""
        ...

    @abstractmethod
    def fetch_link_statuses(self) -> dict[tuple[str, str], str]:
        """Latest link-checker result per (drep_id, uri)."""
        ...

    @abstractmethod
    def fetch_rationale_texts(self) -> dict[str, str]:
        """Fetched rationale content per vote_tx_hash ('' when the fetch found nothing)."""
        ...

    def commit(self, message: str) -> str | None:
        """Version the written data, if the backend supports it."""
        return None


class DoltStore(SyncStore):
    """DoltDB-backed store."""

    def __init__(self, batch_size: int = UPSERT_BATCH_SIZE):
        self.batch_size = batch_size

    def _write_batch(self, spec: TableSpec, batch: list[dict]) -> UpsertResult:
        result = UpsertResult()
        # Rows with different column sets need different statements
        groups: dict[tuple[str, ...], list[dict]] = {}
        for record in batch:
            groups.setdefault(tuple(sorted(record)), []).append(record)

        for columns, records in groups.items():
            placeholders = ", ".join(["%s"] * len(columns))
            update_cols = [c for c in columns if c not in spec.key]
            update_clause = ", ".join(f"`{c}` = VALUES(`{c}`)" for c in update_cols)
            if not update_clause:
                # Key-only rows still need a no-op update clause
                update_clause = f"`{spec.key[0]}` = `{spec.key[0]}`"
            sql = f"""
                INSERT INTO {spec.name} ({", ".join(f"`{c}`" for c in columns)})
                VALUES ({placeholders})
                ON DUPLICATE KEY UPDATE {update_clause}
            """
            params = [
                tuple(serialize_json(r[c]) if c in spec.json_columns else r[c] for c in columns) for r in records
            ]
            try:
                execute_many(sql, params)
                result.success += len(records)
            except pymysql.Error as e:
                result.errors += len(records)
                result.messages.append(f"{spec.name}: batch of {len(records)} failed: {e}")
                logger.warning(f"Upsert into {spec.name} failed for {len(records)} rows: {e}")
        return result

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], conflict_key: Sequence[str]) -> UpsertResult:
        """Batched INSERT ... ON DUPLICATE KEY UPDATE."""
        spec = get_table_spec(table, conflict_key)
        valid, result = partition_rows(spec, rows)
        for start in range(0, len(valid), self.batch_size):
            result = result.merge(self._write_batch(spec, valid[start : start + self.batch_size]))
        return result

    def fetch_link_statuses(self) -> dict[tuple[str, str], str]:
        rows = execute_query("SELECT drep_id, uri, status FROM social_link_checks") or []
        return {(row["drep_id"], row["uri"]): row["status"] for row in rows}

    def fetch_rationale_texts(self) -> dict[str, str]:
        rows = (
            execute_query("SELECT vote_tx_hash, rationale_text FROM vote_rationales WHERE fetched_at IS NOT NULL")
            or []
        )
        return {row["vote_tx_hash"]: row["rationale_text"] or "" for row in rows}

    def check_connection(self) -> str | None:
        """Driver error text when DoltDB is unreachable."""
        return check_connection()

    def commit(self, message: str) -> str | None:
        return dolt_commit(message)


class SyncLogRepository:
    """Records each sync run in sync_log. Used as an orchestrator observer."""

    SYNC_TYPE = "full"

    def __init__(self, store: SyncStore):
        self.store = store

    def on_phase_complete(self, run_id: str, phase: str, duration_ms: int, error: str | None):
        return None

    def on_run_complete(self, summary) -> UpsertResult:
        row = {
            "id": summary.run_id,
            "sync_type": self.SYNC_TYPE,
            "status": summary.status,
            "success": summary.success,
            "started_at": summary.started_at,
            "finished_at": summary.finished_at,
            "duration_ms": summary.duration_ms,
            "phase_timings": summary.phase_timings_ms,
            "phase_errors": summary.phase_errors,
            "record_counts": summary.record_counts,
            "error_message": summary.error_summary[:ERROR_SUMMARY_MAX_CHARS] or None,
        }
        result = self.store.upsert("sync_log", [row], ("id",))
        if result.errors:
            logger.warning(f"Could not record sync run {summary.run_id}: {'; '.join(result.messages)}")
        return result
