"""In-memory SyncStore for dry runs and tests.

Same contract as DoltStore: whitelisted columns, keyed overwrite that only
touches the columns present in the row, JSON columns round-tripped through
the same serializer (so unserializable rows fail here too).
"""

import copy
from typing import Any, Iterable, Mapping, Optional, Sequence

from ..constants import UPSERT_BATCH_SIZE
from .repository import (
    SyncStore,
    UpsertResult,
    deserialize_json,
    get_table_spec,
    partition_rows,
    serialize_json,
)


class InMemoryStore(SyncStore):
    """Dict-of-dicts store keyed by (table, conflict key values)."""

    def __init__(
        self,
        link_statuses: Optional[Mapping[tuple[str, str], str]] = None,
        rationale_texts: Optional[Mapping[str, str]] = None,
        failing_keys: Iterable[tuple] = (),
        batch_size: int = UPSERT_BATCH_SIZE,
    ):
        """
        Args:
            link_statuses: Seed for fetch_link_statuses()
            rationale_texts: Seed for fetch_rationale_texts()
            failing_keys: Conflict-key tuples whose writes fail (fault injection)
            batch_size: Rows per write batch
        """
        self.tables: dict[str, dict[tuple, dict]] = {}
        self.link_statuses = dict(link_statuses or {})
        self.rationale_texts = dict(rationale_texts or {})
        self.failing_keys = set(failing_keys)
        self.batch_size = batch_size
        self.upsert_calls: list[tuple[str, int]] = []

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], conflict_key: Sequence[str]) -> UpsertResult:
        spec = get_table_spec(table, conflict_key)
        valid, result = partition_rows(spec, rows)
        self.upsert_calls.append((table, len(rows)))
        stored = self.tables.setdefault(table, {})

        for start in range(0, len(valid), self.batch_size):
            batch = valid[start : start + self.batch_size]
            keys = [tuple(record[k] for k in spec.key) for record in batch]
            failed = [key for key in keys if key in self.failing_keys]
            if failed:
                # A failing batch loses all of its rows, as in DoltStore
                result.errors += len(batch)
                result.messages.append(f"{table}: batch of {len(batch)} failed: injected failure for {failed[0]}")
                continue
            try:
                encoded = [
                    {
                        col: deserialize_json(serialize_json(value)) if col in spec.json_columns else copy.deepcopy(value)
                        for col, value in record.items()
                    }
                    for record in batch
                ]
            except (TypeError, ValueError) as e:
                result.errors += len(batch)
                result.messages.append(f"{table}: batch of {len(batch)} failed: {e}")
                continue
            for key, record in zip(keys, encoded):
                stored.setdefault(key, {}).update(record)
            result.success += len(batch)

        return result

    def fetch_link_statuses(self) -> dict[tuple[str, str], str]:
        return dict(self.link_statuses)

    def fetch_rationale_texts(self) -> dict[str, str]:
        return dict(self.rationale_texts)

    def rows(self, table: str) -> list[dict]:
        """Stored rows of one table in key order."""
        stored = self.tables.get(table, {})
        return [copy.deepcopy(stored[key]) for key in sorted(stored, key=repr)]

    def get(self, table: str, *key: Any) -> Optional[dict]:
        row = self.tables.get(table, {}).get(tuple(key))
        return copy.deepcopy(row) if row is not None else None
