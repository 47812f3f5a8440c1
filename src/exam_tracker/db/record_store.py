"""Generic record store over the tracker collections.

Records are plain dicts keyed by column name. Lists and mappings are
JSON-encoded on the way in and decoded on the way out, and boolean columns
come back as `bool`.

Updates and deletes of unknown keys are silent no-ops: they return False
and never raise.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog

from exam_tracker.db.database import Database

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CollectionSpec:
    """Shape of one collection (one SQLite table)."""

    name: str
    columns: tuple[str, ...]
    key: str = "id"
    auto_key: bool = True
    json_fields: dict[str, Any] = field(default_factory=dict)
    bool_fields: frozenset[str] = frozenset()
    order_by: str | None = None

    @property
    def value_columns(self) -> tuple[str, ...]:
        return tuple(c for c in self.columns if c != self.key)


CHAPTERS = "chapters"
STUDENT_INFO = "student_info"
CONFIG = "config"
DAILY_TASKS = "daily_tasks"
DAILY_HISTORY = "daily_history"
BACKUPS = "backups"
CLASS_DEFAULTS = "class_defaults"
DEFAULT_CHAPTERS = "default_chapters"
META = "meta"

COLLECTIONS: dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CollectionSpec(
            name=CHAPTERS,
            columns=(
                "id", "subject", "chapter_no", "chapter_name", "exam_types",
                "learning_status", "writing_done", "confidence",
                "last_updated", "notes",
            ),
            json_fields={"exam_types": [], "learning_status": {}},
        ),
        CollectionSpec(
            name=STUDENT_INFO,
            columns=("key", "name", "class_name", "review_date", "locked"),
            key="key",
            auto_key=False,
            bool_fields=frozenset({"locked"}),
        ),
        CollectionSpec(
            name=CONFIG,
            columns=("key", "items"),
            key="key",
            auto_key=False,
            json_fields={"items": []},
        ),
        CollectionSpec(
            name=DAILY_TASKS,
            columns=(
                "id", "date", "subject", "task", "chapter_id", "status",
                "actual_work",
            ),
        ),
        CollectionSpec(
            name=DAILY_HISTORY,
            columns=("date", "tasks", "score"),
            key="date",
            auto_key=False,
            json_fields={"tasks": []},
        ),
        CollectionSpec(
            name=BACKUPS,
            columns=("id", "timestamp", "description", "data"),
            json_fields={"data": {}},
        ),
        CollectionSpec(
            name=CLASS_DEFAULTS,
            columns=("class_name", "subjects", "learning_methods", "exam_types"),
            key="class_name",
            auto_key=False,
            json_fields={"subjects": [], "learning_methods": [], "exam_types": []},
        ),
        CollectionSpec(
            name=DEFAULT_CHAPTERS,
            columns=(
                "id", "class_name", "subject", "chapter_no", "chapter_name",
                "description",
            ),
        ),
        CollectionSpec(
            name=META,
            columns=("key", "value"),
            key="key",
            auto_key=False,
            json_fields={"value": None},
        ),
    )
}

# Live user data, in the order snapshots and exports list it
SNAPSHOT_COLLECTIONS = (CHAPTERS, STUDENT_INFO, CONFIG, DAILY_TASKS, DAILY_HISTORY)


@dataclass
class BulkUpdateResult:
    """Outcome of a multi-record update run in one transaction."""

    updated: int = 0
    missing: list[Any] = field(default_factory=list)
    failed: list[Any] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class RecordStore:
    """CRUD over the collections of one `Database`."""

    def __init__(self, db: Database):
        self.db = db

    # -------------------------------------------------------------------------
    # Single-record operations
    # -------------------------------------------------------------------------

    def insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it as stored (with its key).

        Store-assigned keys are generated when the record has none.
        """
        spec = _spec(collection)
        with self.db.connect() as conn:
            key = self._insert(conn, spec, record)
            stored = self._fetch(conn, spec, key)

        logger.debug("records.inserted", collection=collection, key=key)
        return stored

    def put(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert or replace a record by its explicit key."""
        spec = _spec(collection)
        with self.db.connect() as conn:
            key = self._insert(conn, spec, record, replace=True)
            stored = self._fetch(conn, spec, key)
        return stored

    def get(self, collection: str, key: Any) -> dict[str, Any] | None:
        spec = _spec(collection)
        with self.db.connect() as conn:
            return self._fetch(conn, spec, key)

    def all(self, collection: str) -> list[dict[str, Any]]:
        """Get every record of a collection in key order."""
        spec = _spec(collection)
        with self.db.connect() as conn:
            return self._all(conn, spec)

    def where(self, collection: str, column: str, value: Any) -> list[dict[str, Any]]:
        """Equality query on an indexed column (e.g. daily tasks by date)."""
        spec = _spec(collection)
        _check_column(spec, column)
        with self.db.connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM {spec.name} WHERE {column} = ? ORDER BY {spec.key}",
                (_encode_value(spec, column, value),),
            ).fetchall()
        return [_decode(spec, row) for row in rows]

    def update(self, collection: str, key: Any, changes: dict[str, Any]) -> bool:
        """Merge the named fields into an existing record.

        Returns:
            True if the record exists and was updated, False otherwise
        """
        spec = _spec(collection)
        with self.db.connect() as conn:
            updated = self._update(conn, spec, key, changes)

        if not updated:
            logger.debug("records.update_skipped", collection=collection, key=key)
        return updated

    def delete(self, collection: str, key: Any) -> bool:
        """Delete a record by key.

        Returns:
            True if deleted, False if not found
        """
        spec = _spec(collection)
        with self.db.connect() as conn:
            cursor = conn.execute(
                f"DELETE FROM {spec.name} WHERE {spec.key} = ?", (key,)
            )

        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug("records.deleted", collection=collection, key=key)
        return deleted

    def count(self, collection: str) -> int:
        spec = _spec(collection)
        with self.db.connect() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {spec.name}").fetchone()[0]

    def clear(self, collection: str) -> None:
        spec = _spec(collection)
        with self.db.connect() as conn:
            conn.execute(f"DELETE FROM {spec.name}")
        logger.debug("records.cleared", collection=collection)

    def get_meta(self, key: str, default: Any = None) -> Any:
        """Read a store marker (e.g. 'lastAutoBackup')."""
        record = self.get(META, key)
        return default if record is None else record["value"]

    def set_meta(self, key: str, value: Any) -> None:
        self.put(META, {"key": key, "value": value})

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    def bulk_add(self, collection: str, records: Iterable[dict[str, Any]]) -> int:
        """Insert many records in one transaction, keeping explicit keys."""
        spec = _spec(collection)
        count = 0
        with self.db.connect() as conn:
            for record in records:
                self._insert(conn, spec, record)
                count += 1
        logger.debug("records.bulk_added", collection=collection, count=count)
        return count

    def bulk_put(self, collection: str, records: Iterable[dict[str, Any]]) -> int:
        """Insert or replace many records in one transaction."""
        spec = _spec(collection)
        count = 0
        with self.db.connect() as conn:
            for record in records:
                self._insert(conn, spec, record, replace=True)
                count += 1
        return count

    def bulk_delete(self, collection: str, keys: Iterable[Any]) -> int:
        """Delete many records in one transaction.

        Returns:
            Number of records actually deleted; unknown keys are skipped
        """
        spec = _spec(collection)
        deleted = 0
        with self.db.connect() as conn:
            for key in keys:
                cursor = conn.execute(
                    f"DELETE FROM {spec.name} WHERE {spec.key} = ?", (key,)
                )
                deleted += cursor.rowcount
        logger.debug("records.bulk_deleted", collection=collection, count=deleted)
        return deleted

    def bulk_update(
        self,
        collection: str,
        updates: Iterable[tuple[Any, dict[str, Any]]],
    ) -> BulkUpdateResult:
        """Apply many partial updates inside one transaction.

        A record that fails to update is reported in `failed` and the rest
        still go through. Unknown keys are reported in `missing`.
        """
        spec = _spec(collection)
        result = BulkUpdateResult()
        with self.db.connect() as conn:
            for key, changes in updates:
                try:
                    if self._update(conn, spec, key, changes):
                        result.updated += 1
                    else:
                        result.missing.append(key)
                except (sqlite3.Error, TypeError, ValueError) as e:
                    logger.warning(
                        "records.bulk_update_failed",
                        collection=collection,
                        key=key,
                        error=str(e),
                    )
                    result.failed.append(key)

        logger.debug(
            "records.bulk_updated",
            collection=collection,
            updated=result.updated,
            failed=len(result.failed),
        )
        return result

    def snapshot(self, collections: Iterable[str]) -> dict[str, list[dict[str, Any]]]:
        """Read several collections inside a single transaction."""
        specs = [_spec(name) for name in collections]
        with self.db.connect() as conn:
            return {spec.name: self._all(conn, spec) for spec in specs}

    def replace_all(
        self,
        payload: dict[str, list[dict[str, Any]]],
        append: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        """Replace the contents of several collections atomically.

        Every incoming record is encoded before anything is touched, then a
        single transaction deletes the live rows and inserts the staged ones.
        Records in `append` are added to their collections (with fresh keys)
        in the same transaction. If any step fails the transaction is rolled
        back and the live data is left exactly as it was.
        """
        staged = [(_spec(name), [_encode(_spec(name), r) for r in records])
                  for name, records in payload.items()]
        appended = []
        for name, records in (append or {}).items():
            spec = _spec(name)
            appended.append(
                (spec, [_encode(spec, {**r, spec.key: None}) for r in records])
            )

        with self.db.connect() as conn:
            for spec, rows in staged:
                conn.execute(f"DELETE FROM {spec.name}")
                for columns, values in rows:
                    _execute_insert(conn, spec, columns, values)
            for spec, rows in appended:
                for columns, values in rows:
                    _execute_insert(conn, spec, columns, values)

        logger.info(
            "records.replaced",
            collections={spec.name: len(rows) for spec, rows in staged},
            appended={spec.name: len(rows) for spec, rows in appended},
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _insert(
        self,
        conn: sqlite3.Connection,
        spec: CollectionSpec,
        record: dict[str, Any],
        replace: bool = False,
    ) -> Any:
        columns, values = _encode(spec, record)
        if not spec.auto_key and spec.key not in columns:
            raise ValueError(f"{spec.name} records need an explicit '{spec.key}'")
        cursor = _execute_insert(conn, spec, columns, values, replace=replace)
        if spec.key in columns:
            return values[columns.index(spec.key)]
        return cursor.lastrowid

    def _update(
        self,
        conn: sqlite3.Connection,
        spec: CollectionSpec,
        key: Any,
        changes: dict[str, Any],
    ) -> bool:
        columns, values = _encode(
            spec, {k: v for k, v in changes.items() if k != spec.key}
        )
        if not columns:
            row = conn.execute(
                f"SELECT 1 FROM {spec.name} WHERE {spec.key} = ?", (key,)
            ).fetchone()
            return row is not None
        assignments = ", ".join(f"{c} = ?" for c in columns)
        cursor = conn.execute(
            f"UPDATE {spec.name} SET {assignments} WHERE {spec.key} = ?",
            (*values, key),
        )
        return cursor.rowcount > 0

    def _fetch(
        self, conn: sqlite3.Connection, spec: CollectionSpec, key: Any
    ) -> dict[str, Any] | None:
        row = conn.execute(
            f"SELECT * FROM {spec.name} WHERE {spec.key} = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return _decode(spec, row)

    def _all(self, conn: sqlite3.Connection, spec: CollectionSpec) -> list[dict[str, Any]]:
        order = spec.order_by or spec.key
        rows = conn.execute(f"SELECT * FROM {spec.name} ORDER BY {order}").fetchall()
        return [_decode(spec, row) for row in rows]


def _spec(collection: str) -> CollectionSpec:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


def _check_column(spec: CollectionSpec, column: str) -> None:
    if column not in spec.columns:
        raise ValueError(f"Unknown column for {spec.name}: {column}")


def _execute_insert(
    conn: sqlite3.Connection,
    spec: CollectionSpec,
    columns: list[str],
    values: list[Any],
    replace: bool = False,
) -> sqlite3.Cursor:
    verb = "INSERT OR REPLACE" if replace else "INSERT"
    if not columns:
        return conn.execute(f"{verb} INTO {spec.name} DEFAULT VALUES")
    placeholders = ", ".join("?" for _ in columns)
    return conn.execute(
        f"{verb} INTO {spec.name} ({', '.join(columns)}) VALUES ({placeholders})",
        values,
    )


def _encode_value(spec: CollectionSpec, column: str, value: Any) -> Any:
    if column in spec.json_fields:
        return json.dumps(value, ensure_ascii=False)
    if column in spec.bool_fields:
        return int(bool(value))
    return value


def _encode(spec: CollectionSpec, record: dict[str, Any]) -> tuple[list[str], list[Any]]:
    """Convert a record into (columns, values), dropping unknown fields.

    A None key on a store-assigned collection means "assign one".
    """
    columns: list[str] = []
    values: list[Any] = []
    for column in spec.columns:
        if column not in record:
            continue
        value = record[column]
        if column == spec.key and spec.auto_key and value is None:
            continue
        columns.append(column)
        values.append(_encode_value(spec, column, value))
    return columns, values


def _decode(spec: CollectionSpec, row: sqlite3.Row) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for column in row.keys():
        value = row[column]
        if column in spec.json_fields:
            default = spec.json_fields[column]
            value = json.loads(value) if value is not None else _copy(default)
        elif column in spec.bool_fields:
            value = bool(value)
        record[column] = value
    return record


def _copy(default: Any) -> Any:
    if isinstance(default, (list, dict)):
        return type(default)()
    return default
