"""Tests for the SQLite case store."""

from datetime import datetime, timedelta, timezone

import pytest

from casecite.core.case_state import CaseState
from casecite.core.database import CaseDatabase
from casecite.core.errors import NotFound, PersistenceError
from casecite.core.models import FocusFlags, UsageLogEntry


@pytest.fixture()
def db(tmp_path):
    """Create a fresh CaseDatabase in a temp directory."""
    cdb = CaseDatabase(tmp_path / "data" / "casecite.db")
    yield cdb
    cdb.close()


@pytest.fixture()
def case(db):
    return db.create_case(
        "Cohen v. Hospital", "alice", FocusFlags(causation=True), "Delay in CT"
    )


def _entry(case_id, **kw):
    defaults = dict(
        case_id=case_id,
        username="alice",
        action="initial-report",
        status="success",
        model="qwen3:32b",
        duration_ms=1200,
        prompt_tokens=1000,
        completion_tokens=500,
        total_tokens=1500,
        cost_usd=0.45,
    )
    defaults.update(kw)
    return UsageLogEntry(**defaults)


# ── Table Creation ───────────────────────────────────────────────────


def test_tables_exist(db):
    tables = {
        r[0]
        for r in db._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
    }
    assert {"cases", "case_documents", "ai_usage_logs"}.issubset(tables)


def test_wal_mode(db):
    mode = db._conn.execute("PRAGMA journal_mode").fetchone()[0]
    assert mode == "wal"


def test_parent_directory_created(db, tmp_path):
    assert (tmp_path / "data").is_dir()


# ── Cases ────────────────────────────────────────────────────────────


def test_create_case_round_trip(db, case):
    loaded = db.get_case(case.id)
    assert loaded.name == "Cohen v. Hospital"
    assert loaded.owner == "alice"
    assert loaded.state == CaseState.IDLE
    assert loaded.focus_options.causation is True
    assert loaded.focus_options.negligence is False
    assert loaded.focus_text == "Delay in CT"
    assert loaded.initial_report is None


def test_focus_flags_stored_by_alias(db, case):
    raw = db._conn.execute(
        "SELECT focus_options FROM cases WHERE id = ?", (case.id,)
    ).fetchone()[0]
    assert "lifeExpectancy" in raw


def test_get_missing_case(db):
    assert db.get_case("nope") is None


# ── State Transitions ────────────────────────────────────────────────


def test_save_report_completes(db, case):
    db.begin_processing(case.id)
    updated = db.save_report(case.id, "initial", "# Report")
    assert updated.state == CaseState.IDLE
    assert updated.initial_report == "# Report"
    assert updated.comparison_report is None


def test_save_report_requires_processing(db, case):
    with pytest.raises(PersistenceError, match="Invalid transition"):
        db.save_report(case.id, "initial", "text")
    assert db.get_case(case.id).initial_report is None


def test_mark_error_keeps_report(db, case):
    db.begin_processing(case.id)
    db.save_report(case.id, "comparison", "old")
    db.begin_processing(case.id)
    updated = db.mark_error(case.id)
    assert updated.state == CaseState.ERROR
    assert updated.comparison_report == "old"


def test_error_recovers_on_next_request(db, case):
    db.begin_processing(case.id)
    db.mark_error(case.id)
    assert db.begin_processing(case.id).state == CaseState.PROCESSING


def test_mark_error_from_idle_refused(db, case):
    with pytest.raises(PersistenceError):
        db.mark_error(case.id)


def test_settle_overwrites_report_written_by_concurrent_request(db, case):
    db.begin_processing(case.id)
    db.begin_processing(case.id)
    db.save_report(case.id, "initial", "first", settle=True)
    updated = db.save_report(case.id, "initial", "second", settle=True)
    assert updated.state == CaseState.IDLE
    assert updated.initial_report == "second"


def test_settle_fail_after_concurrent_completion(db, case):
    db.begin_processing(case.id)
    db.save_report(case.id, "initial", "first", settle=True)
    updated = db.mark_error(case.id, settle=True)
    assert updated.state == CaseState.ERROR
    assert updated.initial_report == "first"


def test_settle_on_missing_case(db):
    with pytest.raises(NotFound):
        db.save_report("missing", "initial", "text", settle=True)


def test_transition_on_missing_case(db):
    with pytest.raises(NotFound):
        db.begin_processing("missing")


# ── Documents ────────────────────────────────────────────────────────


def test_documents_newest_first(db, case):
    first = db.add_document(case.id, "a.pdf", "application/pdf", "text a")
    second = db.add_document(case.id, "b.pdf", "application/pdf", "text b")
    docs = db.get_case_documents(case.id)
    assert [d.id for d in docs] == [second.id, first.id]


def test_document_size_defaults_to_text_bytes(db, case):
    doc = db.add_document(case.id, "a.txt", "text/plain", "שלום")
    assert doc.size_bytes == len("שלום".encode("utf-8"))


def test_get_document_scoped_to_case(db, case):
    other = db.create_case("Other", "bob")
    doc = db.add_document(case.id, "a.pdf", "application/pdf", "t")
    assert db.get_case_document(case.id, doc.id).id == doc.id
    assert db.get_case_document(other.id, doc.id) is None


def test_document_for_missing_case_fails(db):
    with pytest.raises(PersistenceError):
        db.add_document("missing", "a.pdf", "application/pdf", "t")


# ── Usage Log ────────────────────────────────────────────────────────


def test_usage_log_round_trip(db, case):
    log_id = db.add_usage_log(_entry(case.id))
    [loaded] = db.get_usage_logs(case_id=case.id)
    assert loaded.id == log_id
    assert loaded.total_tokens == 1500
    assert loaded.created_at is not None


def test_usage_logs_filtered_by_since(db, case):
    old = datetime.now(timezone.utc) - timedelta(days=60)
    db.add_usage_log(_entry(case.id, created_at=old))
    db.add_usage_log(_entry(case.id))
    since = datetime.now(timezone.utc) - timedelta(days=30)
    assert len(db.get_usage_logs(since=since)) == 1
    assert len(db.get_usage_logs()) == 2


def test_usage_totals_and_by_action(db, case):
    db.add_usage_log(_entry(case.id))
    db.add_usage_log(
        _entry(
            case.id,
            action="literature-review",
            status="error",
            prompt_tokens=None,
            completion_tokens=None,
            total_tokens=None,
            cost_usd=None,
            error_message="timeout",
        )
    )
    since = datetime.now(timezone.utc) - timedelta(days=1)
    totals = db.get_usage_totals(since)
    assert totals["total_calls"] == 2
    assert totals["total_tokens"] == 1500
    assert totals["total_cost_usd"] == pytest.approx(0.45)

    by_action = {r["action"]: r for r in db.get_usage_by_action(since)}
    assert by_action["initial-report"]["total_prompt_tokens"] == 1000
    assert by_action["literature-review"]["total_tokens"] == 0
