"""SQLite store for children, provider bindings, daily reports and sync run logs."""

import asyncio
import json
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path

from daycare_sync.exceptions import PersistenceError
from daycare_sync.models import Child, ProviderBinding

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("output/daycare.db")

# Event tables written from the report payload: table -> (payload key, columns)
_EVENT_TABLES = {
    "naps": ("naps_data", ["start_time", "end_time", "duration_text"]),
    "meals": ("meals_data", ["meal_time", "description", "amount"]),
    "bathroom_events": ("bathroom_events_data", ["event_time", "event_type", "status", "initials"]),
    "activities": ("activities_data", ["activity_time", "description", "categories", "goals"]),
    "photos": ("photos_data", ["image_url", "thumbnail_url", "source_domain", "description"]),
}

# Columns holding JSON-encoded lists
_JSON_COLUMNS = {"initials", "categories", "goals"}


def _get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """Get a database connection, creating the DB and tables if needed."""
    path = Path(db_path or DEFAULT_DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    _create_tables(conn)
    return conn


def _create_tables(conn: sqlite3.Connection) -> None:
    """Create tables if they don't exist."""
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS children (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            first_name TEXT NOT NULL,
            last_name TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS provider_bindings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            provider_name TEXT NOT NULL DEFAULT '',
            report_sender_email TEXT NOT NULL,
            parser_strategy TEXT,
            created_at TEXT NOT NULL,
            UNIQUE(user_id, report_sender_email)
        );

        CREATE TABLE IF NOT EXISTS daily_reports (
            id TEXT PRIMARY KEY,
            child_id TEXT NOT NULL REFERENCES children(id),
            report_date TEXT NOT NULL,
            teacher_notes TEXT NOT NULL DEFAULT '',
            parent_notes TEXT,
            raw_email_id TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS naps (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            report_id TEXT NOT NULL REFERENCES daily_reports(id) ON DELETE CASCADE,
            child_id TEXT NOT NULL,
            start_time TEXT,
            end_time TEXT,
            duration_text TEXT
        );

        CREATE TABLE IF NOT EXISTS meals (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            report_id TEXT NOT NULL REFERENCES daily_reports(id) ON DELETE CASCADE,
            child_id TEXT NOT NULL,
            meal_time TEXT,
            description TEXT,
            amount TEXT
        );

        CREATE TABLE IF NOT EXISTS bathroom_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            report_id TEXT NOT NULL REFERENCES daily_reports(id) ON DELETE CASCADE,
            child_id TEXT NOT NULL,
            event_time TEXT,
            event_type TEXT,
            status TEXT,
            initials TEXT NOT NULL DEFAULT '[]'
        );

        CREATE TABLE IF NOT EXISTS activities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            report_id TEXT NOT NULL REFERENCES daily_reports(id) ON DELETE CASCADE,
            child_id TEXT NOT NULL,
            activity_time TEXT,
            description TEXT,
            categories TEXT,
            goals TEXT
        );

        CREATE TABLE IF NOT EXISTS photos (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            report_id TEXT NOT NULL REFERENCES daily_reports(id) ON DELETE CASCADE,
            child_id TEXT NOT NULL,
            image_url TEXT NOT NULL,
            thumbnail_url TEXT,
            source_domain TEXT,
            description TEXT
        );

        CREATE TABLE IF NOT EXISTS sync_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            run_id TEXT NOT NULL UNIQUE,
            user_id TEXT NOT NULL,
            started_at TEXT NOT NULL,
            finished_at TEXT,
            status TEXT NOT NULL DEFAULT 'running',
            error_message TEXT,
            stats TEXT NOT NULL DEFAULT '{}',
            outcomes TEXT NOT NULL DEFAULT '[]'
        );

        CREATE INDEX IF NOT EXISTS idx_children_user ON children(user_id);
        CREATE INDEX IF NOT EXISTS idx_reports_child_date ON daily_reports(child_id, report_date);
        CREATE INDEX IF NOT EXISTS idx_naps_report ON naps(report_id);
        CREATE INDEX IF NOT EXISTS idx_meals_report ON meals(report_id);
        CREATE INDEX IF NOT EXISTS idx_bathroom_report ON bathroom_events(report_id);
        CREATE INDEX IF NOT EXISTS idx_activities_report ON activities(report_id);
        CREATE INDEX IF NOT EXISTS idx_photos_report ON photos(report_id);
        CREATE INDEX IF NOT EXISTS idx_runs_started ON sync_runs(started_at);
    """)
    conn.commit()


def _now() -> str:
    return datetime.now(UTC).isoformat()


# --- Children ---

def add_child(user_id: str, first_name: str, last_name: str | None = None,
              db_path: Path | None = None) -> Child:
    """Add a child to a user's roster."""
    child = Child(id=str(uuid.uuid4()), first_name=first_name.strip(),
                  last_name=(last_name or "").strip() or None)
    conn = _get_connection(db_path)
    try:
        conn.execute(
            "INSERT INTO children (id, user_id, first_name, last_name, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (child.id, user_id, child.first_name, child.last_name, _now()),
        )
        conn.commit()
    finally:
        conn.close()
    logger.info("Added child %s (%s) for user %s", child.full_name, child.id, user_id)
    return child


def list_children(user_id: str, db_path: Path | None = None) -> list[Child]:
    """List a user's children in the order they were added."""
    conn = _get_connection(db_path)
    try:
        rows = conn.execute(
            "SELECT id, first_name, last_name FROM children WHERE user_id = ? "
            "ORDER BY created_at, rowid",
            (user_id,),
        ).fetchall()
        return [Child(id=r["id"], first_name=r["first_name"], last_name=r["last_name"])
                for r in rows]
    finally:
        conn.close()


# --- Provider bindings ---

def add_provider_binding(user_id: str, sender_matcher: str, provider_name: str = "",
                         strategy_id: str | None = None,
                         db_path: Path | None = None) -> None:
    """Save or update a user's binding for a sender address or @domain."""
    conn = _get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO provider_bindings
               (user_id, provider_name, report_sender_email, parser_strategy, created_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(user_id, report_sender_email) DO UPDATE SET
               provider_name=excluded.provider_name,
               parser_strategy=excluded.parser_strategy""",
            (user_id, provider_name, sender_matcher.strip().lower(), strategy_id, _now()),
        )
        conn.commit()
    finally:
        conn.close()


def list_provider_bindings(user_id: str, db_path: Path | None = None) -> list[ProviderBinding]:
    """List a user's provider bindings in configured (insertion) order."""
    conn = _get_connection(db_path)
    try:
        rows = conn.execute(
            "SELECT report_sender_email, parser_strategy, provider_name "
            "FROM provider_bindings WHERE user_id = ? ORDER BY id",
            (user_id,),
        ).fetchall()
        return [
            ProviderBinding(
                sender_matcher=r["report_sender_email"],
                strategy_id=r["parser_strategy"],
                provider_name=r["provider_name"] or None,
            )
            for r in rows
        ]
    finally:
        conn.close()


# --- Daily reports ---

def report_exists(raw_email_id: str, db_path: Path | None = None) -> bool:
    """Check if a report was already stored for a source message id."""
    conn = _get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT 1 FROM daily_reports WHERE raw_email_id = ?", (raw_email_id,)
        ).fetchone()
        return row is not None
    finally:
        conn.close()


def _encode(column: str, value):
    if column in _JSON_COLUMNS and value is not None:
        return json.dumps(value)
    return value


def _decode_row(row: sqlite3.Row) -> dict:
    d = dict(row)
    for column in _JSON_COLUMNS & d.keys():
        if d[column] is not None:
            d[column] = json.loads(d[column])
    return d


def save_report(payload: dict, db_path: Path | None = None) -> tuple[str, bool]:
    """Write a report and all its events in one transaction.

    The raw email id is unique, so a second write for the same message (from
    this run or a concurrent one) inserts nothing.

    Returns:
        (report_id, created). created is False when the message was already
        stored; report_id is then the existing report's id.
    """
    report_id = str(uuid.uuid4())
    child_id = payload["child_id"]
    conn = _get_connection(db_path)
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        cursor = conn.execute(
            """INSERT INTO daily_reports
               (id, child_id, report_date, teacher_notes, parent_notes, raw_email_id, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(raw_email_id) DO NOTHING""",
            (report_id, child_id, payload["report_date"], payload.get("teacher_notes") or "",
             payload.get("parent_notes"), payload["raw_email_id"], _now()),
        )
        if cursor.rowcount == 0:
            row = conn.execute(
                "SELECT id FROM daily_reports WHERE raw_email_id = ?", (payload["raw_email_id"],)
            ).fetchone()
            conn.execute("ROLLBACK")
            return row["id"], False

        for table, (key, columns) in _EVENT_TABLES.items():
            rows = payload.get(key) or []
            if not rows:
                continue
            placeholders = ", ".join("?" * (len(columns) + 2))
            conn.executemany(
                f"INSERT INTO {table} (report_id, child_id, {', '.join(columns)}) "
                f"VALUES ({placeholders})",
                [
                    (report_id, child_id, *(_encode(c, item.get(c)) for c in columns))
                    for item in rows
                ],
            )
        conn.execute("COMMIT")
        return report_id, True
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def _load_events(conn: sqlite3.Connection, report_ids: list[str]) -> dict[str, dict[str, list]]:
    events: dict[str, dict[str, list]] = {
        rid: {table: [] for table in _EVENT_TABLES} for rid in report_ids
    }
    if not report_ids:
        return events
    marks = ", ".join("?" * len(report_ids))
    for table in _EVENT_TABLES:
        rows = conn.execute(
            f"SELECT * FROM {table} WHERE report_id IN ({marks}) ORDER BY id", report_ids
        ).fetchall()
        for r in rows:
            d = _decode_row(r)
            events[d["report_id"]][table].append(d)
    return events


def get_report(report_id: str, db_path: Path | None = None) -> dict | None:
    """Get a single report with its naps, meals, bathroom events, activities and photos."""
    conn = _get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT * FROM daily_reports WHERE id = ?", (report_id,)
        ).fetchone()
        if not row:
            return None
        d = dict(row)
        d.update(_load_events(conn, [report_id])[report_id])
        return d
    finally:
        conn.close()


def list_reports(child_id: str, start_date: str | None = None, end_date: str | None = None,
                 db_path: Path | None = None) -> list[dict]:
    """List a child's reports with events, oldest first, optionally within a date range."""
    query = "SELECT * FROM daily_reports WHERE child_id = ?"
    params: list = [child_id]
    if start_date:
        query += " AND report_date >= ?"
        params.append(start_date)
    if end_date:
        query += " AND report_date <= ?"
        params.append(end_date)
    query += " ORDER BY report_date, created_at"

    conn = _get_connection(db_path)
    try:
        reports = [dict(r) for r in conn.execute(query, params).fetchall()]
        events = _load_events(conn, [r["id"] for r in reports])
        for report in reports:
            report.update(events[report["id"]])
        return reports
    finally:
        conn.close()


# --- Sync run logging ---

def start_run(run_id: str, user_id: str, db_path: Path | None = None) -> None:
    """Record the start of a sync run."""
    conn = _get_connection(db_path)
    try:
        conn.execute(
            "INSERT INTO sync_runs (run_id, user_id, started_at, status) "
            "VALUES (?, ?, ?, 'running')",
            (run_id, user_id, _now()),
        )
        conn.commit()
    finally:
        conn.close()


def finish_run(run_id: str, status: str, stats: dict | None = None,
               outcomes: list[dict] | None = None, error_message: str = "",
               db_path: Path | None = None) -> None:
    """Mark a sync run as finished with its outcome counts and per-message outcomes."""
    conn = _get_connection(db_path)
    try:
        conn.execute(
            "UPDATE sync_runs SET status = ?, finished_at = ?, error_message = ?, "
            "stats = ?, outcomes = ? WHERE run_id = ?",
            (status, _now(), error_message, json.dumps(stats or {}),
             json.dumps(outcomes or []), run_id),
        )
        conn.commit()
    finally:
        conn.close()


def _run_dict(row: sqlite3.Row) -> dict:
    d = dict(row)
    d["stats"] = json.loads(d["stats"])
    d["outcomes"] = json.loads(d["outcomes"])
    return d


def list_runs(limit: int = 20, user_id: str | None = None,
              db_path: Path | None = None) -> list[dict]:
    """List recent sync runs (most recent first)."""
    conn = _get_connection(db_path)
    try:
        if user_id:
            rows = conn.execute(
                "SELECT * FROM sync_runs WHERE user_id = ? ORDER BY started_at DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM sync_runs ORDER BY started_at DESC LIMIT ?", (limit,)
            ).fetchall()
        return [_run_dict(r) for r in rows]
    finally:
        conn.close()


def get_run(run_id: str, db_path: Path | None = None) -> dict | None:
    """Get a single sync run by run_id."""
    conn = _get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT * FROM sync_runs WHERE run_id = ?", (run_id,)
        ).fetchone()
        return _run_dict(row) if row else None
    finally:
        conn.close()


class ReportStore:
    """Async persistence gateway used by the ingestion orchestrator.

    Each call runs the blocking sqlite work in a thread and surfaces any
    sqlite failure as PersistenceError.
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path

    async def _call(self, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, db_path=self.db_path, **kwargs)
        except sqlite3.Error as e:
            raise PersistenceError(f"{func.__name__} failed: {e}") from e

    async def report_exists(self, raw_email_id: str) -> bool:
        return await self._call(report_exists, raw_email_id)

    async def save_report(self, payload: dict) -> tuple[str, bool]:
        return await self._call(save_report, payload)

    async def list_provider_bindings(self, user_id: str) -> list[ProviderBinding]:
        return await self._call(list_provider_bindings, user_id)

    async def list_children(self, user_id: str) -> list[Child]:
        return await self._call(list_children, user_id)

    async def start_run(self, run_id: str, user_id: str) -> None:
        await self._call(start_run, run_id, user_id)

    async def finish_run(self, run_id: str, status: str, stats: dict | None = None,
                         outcomes: list[dict] | None = None, error_message: str = "") -> None:
        await self._call(finish_run, run_id, status, stats=stats, outcomes=outcomes,
                         error_message=error_message)
