"""SQLite case store: cases, their documents and the AI usage log."""

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from casecite.core import case_state
from casecite.core.case_state import CaseState, Transition
from casecite.core.errors import NotFound, PersistenceError
from casecite.core.models import (
    Case,
    CaseDocument,
    FocusFlags,
    ReportKind,
    UsageLogEntry,
)

logger = logging.getLogger(__name__)

_REPORT_COLUMNS: dict[str, str] = {
    "initial": "initial_report",
    "comparison": "comparison_report",
}

# ── Schema DDL ───────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cases (
    id                  TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    owner               TEXT NOT NULL,
    focus_options       TEXT NOT NULL DEFAULT '{}',   -- JSON FocusFlags
    focus_text          TEXT NOT NULL DEFAULT '',
    initial_report      TEXT,
    comparison_report   TEXT,
    state               TEXT NOT NULL DEFAULT 'idle'
                        CHECK (state IN ('idle', 'processing', 'error')),
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_cases_owner ON cases(owner);

CREATE TABLE IF NOT EXISTS case_documents (
    id                  TEXT PRIMARY KEY,
    case_id             TEXT NOT NULL REFERENCES cases(id) ON DELETE CASCADE,
    original_filename   TEXT NOT NULL,
    mime_type           TEXT NOT NULL,
    size_bytes          INTEGER NOT NULL,
    extracted_text      TEXT,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_case_documents_case_id ON case_documents(case_id);

CREATE TABLE IF NOT EXISTS ai_usage_logs (
    id                  TEXT PRIMARY KEY,
    case_id             TEXT NOT NULL REFERENCES cases(id) ON DELETE CASCADE,
    username            TEXT NOT NULL,
    action              TEXT NOT NULL,
    status              TEXT NOT NULL CHECK (status IN ('success', 'error')),
    model               TEXT,
    duration_ms         INTEGER,
    prompt_tokens       INTEGER,
    completion_tokens   INTEGER,
    total_tokens        INTEGER,
    cost_usd            REAL,
    error_message       TEXT,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ai_usage_case_id    ON ai_usage_logs(case_id);
CREATE INDEX IF NOT EXISTS idx_ai_usage_created_at ON ai_usage_logs(created_at);
"""


# ── CaseDatabase ─────────────────────────────────────────────────────


class CaseDatabase:
    """SQLite store for cases; the case ``state`` column is a state machine."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ── Cases ────────────────────────────────────────────────

    def create_case(
        self,
        name: str,
        owner: str,
        focus_options: FocusFlags | None = None,
        focus_text: str = "",
    ) -> Case:
        """Insert a new idle case. Returns the stored record."""
        case_id = str(uuid.uuid4())
        focus = focus_options or FocusFlags()
        self._write(
            """INSERT INTO cases
               (id, name, owner, focus_options, focus_text, state, created_at)
               VALUES (?, ?, ?, ?, ?, 'idle', ?)""",
            (
                case_id,
                name,
                owner,
                json.dumps(focus.model_dump(by_alias=True)),
                focus_text,
                _now(),
            ),
        )
        return self.get_case(case_id)

    def get_case(self, case_id: str) -> Case | None:
        row = self._conn.execute(
            "SELECT * FROM cases WHERE id = ?", (case_id,)
        ).fetchone()
        return _row_to_case(row) if row else None

    # ── State Transitions ────────────────────────────────────

    def begin_processing(self, case_id: str) -> Case:
        """idle|error → processing. Committed before any external call."""
        return self._transition(case_id, case_state.begin_processing)

    def mark_error(self, case_id: str, *, settle: bool = False) -> Case:
        """processing → error.

        With ``settle`` the write lands from any state: a request that already
        began processing may find the case settled by a concurrent one.
        """
        step = case_state.settle_fail if settle else case_state.fail
        return self._transition(case_id, step)

    def save_report(
        self, case_id: str, kind: ReportKind, text: str, *, settle: bool = False
    ) -> Case:
        """Store the report text and move processing → idle in one UPDATE.

        ``settle`` as for ``mark_error``; the last report written wins.
        """
        column = _REPORT_COLUMNS[kind]
        step = case_state.settle_complete if settle else case_state.complete
        return self._transition(case_id, step, extra={column: text})

    def _transition(
        self,
        case_id: str,
        step: Callable[[CaseState], Transition],
        extra: dict[str, str] | None = None,
    ) -> Case:
        """Apply a transition function as a conditional UPDATE.

        Only rows whose current state accepts the transition are touched, so
        the state check and the write happen in a single statement.
        """
        sources = [s for s in CaseState if step(s).ok]
        target = step(sources[0]).state

        assignments = {"state": target.value, **(extra or {})}
        set_clause = ", ".join(f"{col} = ?" for col in assignments)
        placeholders = ", ".join("?" for _ in sources)
        cur = self._write(
            f"UPDATE cases SET {set_clause} WHERE id = ? AND state IN ({placeholders})",
            (*assignments.values(), case_id, *(s.value for s in sources)),
        )

        if cur.rowcount == 0:
            case = self.get_case(case_id)
            if case is None:
                raise NotFound(f"Case {case_id} not found")
            raise PersistenceError(
                f"Invalid transition: {case.state.value} → {target.value}",
                details=f"allowed from: {', '.join(s.value for s in sources)}",
            )

        logger.debug("Case %s → %s", case_id, target.value)
        return self.get_case(case_id)

    # ── Documents ────────────────────────────────────────────

    def add_document(
        self,
        case_id: str,
        original_filename: str,
        mime_type: str,
        extracted_text: str | None,
        size_bytes: int | None = None,
    ) -> CaseDocument:
        """Record a document whose text was extracted upstream."""
        doc_id = str(uuid.uuid4())
        if size_bytes is None:
            size_bytes = len((extracted_text or "").encode("utf-8"))
        self._write(
            """INSERT INTO case_documents
               (id, case_id, original_filename, mime_type, size_bytes,
                extracted_text, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                doc_id,
                case_id,
                original_filename,
                mime_type,
                size_bytes,
                extracted_text,
                _now(),
            ),
        )
        return self.get_case_document(case_id, doc_id)

    def get_case_documents(self, case_id: str) -> list[CaseDocument]:
        """All documents of a case, newest first."""
        rows = self._conn.execute(
            """SELECT * FROM case_documents WHERE case_id = ?
               ORDER BY created_at DESC, rowid DESC""",
            (case_id,),
        ).fetchall()
        return [CaseDocument.model_validate(dict(r)) for r in rows]

    def get_case_document(self, case_id: str, document_id: str) -> CaseDocument | None:
        row = self._conn.execute(
            "SELECT * FROM case_documents WHERE case_id = ? AND id = ?",
            (case_id, document_id),
        ).fetchone()
        return CaseDocument.model_validate(dict(row)) if row else None

    # ── Usage Log ────────────────────────────────────────────

    def add_usage_log(self, entry: UsageLogEntry) -> str:
        """Append one usage entry. Returns its id. There is no update path."""
        log_id = entry.id or str(uuid.uuid4())
        self._write(
            """INSERT INTO ai_usage_logs
               (id, case_id, username, action, status, model, duration_ms,
                prompt_tokens, completion_tokens, total_tokens, cost_usd,
                error_message, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                log_id,
                entry.case_id,
                entry.username,
                entry.action,
                entry.status,
                entry.model,
                entry.duration_ms,
                entry.prompt_tokens,
                entry.completion_tokens,
                entry.total_tokens,
                entry.cost_usd,
                entry.error_message,
                (entry.created_at or datetime.now(timezone.utc)).isoformat(),
            ),
        )
        return log_id

    def get_usage_logs(
        self,
        case_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[UsageLogEntry]:
        """Usage entries, newest first, optionally scoped to a case or window."""
        query = "SELECT * FROM ai_usage_logs WHERE 1 = 1"
        params: list = []
        if case_id is not None:
            query += " AND case_id = ?"
            params.append(case_id)
        if since is not None:
            query += " AND created_at >= ?"
            params.append(since.isoformat())
        query += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = self._conn.execute(query, params).fetchall()
        return [UsageLogEntry.model_validate(dict(r)) for r in rows]

    def get_usage_totals(self, since: datetime) -> dict:
        """Aggregate call/token/cost/duration totals since a point in time."""
        row = self._conn.execute(
            """SELECT COUNT(*)                        AS total_calls,
                      COALESCE(SUM(total_tokens), 0)  AS total_tokens,
                      COALESCE(SUM(cost_usd), 0)      AS total_cost_usd,
                      COALESCE(AVG(duration_ms), 0)   AS avg_duration_ms
               FROM ai_usage_logs WHERE created_at >= ?""",
            (since.isoformat(),),
        ).fetchone()
        return dict(row)

    def get_usage_by_action(self, since: datetime) -> list[dict]:
        rows = self._conn.execute(
            """SELECT action,
                      COUNT(*)                             AS total_calls,
                      COALESCE(SUM(prompt_tokens), 0)      AS total_prompt_tokens,
                      COALESCE(SUM(completion_tokens), 0)  AS total_completion_tokens,
                      COALESCE(SUM(total_tokens), 0)       AS total_tokens,
                      COALESCE(SUM(cost_usd), 0)           AS total_cost_usd,
                      COALESCE(AVG(duration_ms), 0)        AS avg_duration_ms
               FROM ai_usage_logs WHERE created_at >= ?
               GROUP BY action ORDER BY action""",
            (since.isoformat(),),
        ).fetchall()
        return [dict(r) for r in rows]

    # ── Internals ────────────────────────────────────────────

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        """Execute and commit a write, surfacing failures as PersistenceError."""
        try:
            cur = self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise PersistenceError("Database write failed", details=str(exc)) from exc
        return cur

    # ── Cleanup ──────────────────────────────────────────────

    def close(self) -> None:
        self._conn.close()


# ── Helpers ──────────────────────────────────────────────────────────


def _row_to_case(row: sqlite3.Row) -> Case:
    data = dict(row)
    data["focus_options"] = FocusFlags.model_validate(
        json.loads(data["focus_options"] or "{}")
    )
    return Case.model_validate(data)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
