"""Tests for the SQLite run store."""

import asyncio
import sqlite3
from dataclasses import replace

import pytest

from conftest import BASE_TS, MINUTE

from proofline.config import Settings
from proofline.pipeline import PipelineOptions, run_pipeline
from proofline.store import SCHEMA_VERSION, RunStore


@pytest.fixture
def store(tmp_path):
    s = RunStore(tmp_path / "home" / "runs.db")
    yield s
    s.close()


@pytest.fixture
def run_output(project_session, tmp_path):
    _, batch = project_session

    def _make(shift: int = 0, question: str | None = None):
        shifted = replace(batch, raw_events=[
            replace(e, timestamp=e.timestamp + shift) for e in batch.raw_events
        ])
        return asyncio.run(run_pipeline(
            shifted, PipelineOptions(question=question), Settings(home=tmp_path / "home"),
            now=BASE_TS + shift + 10 * MINUTE,
        ))
    return _make


class TestRunStore:

    def test_creates_parent_dirs(self, store):
        assert store.count() == 0
        assert store.db_path.exists()

    def test_save_and_load(self, store, run_output):
        output = run_output()
        run_id = store.save_run(output)

        assert run_id == output.context.run_id
        assert store.count() == 1
        payload = store.load_run(run_id)
        assert payload["context"]["runId"] == run_id
        assert payload["timeline"][0]["id"] == "u1"
        assert "projectScope" in payload
        assert store.load_run("missing") is None

    def test_save_is_idempotent(self, store, run_output):
        output = run_output()
        store.save_run(output)
        store.save_run(output)
        assert store.count() == 1

    def test_list_newest_first(self, store, run_output):
        older = run_output()
        newer = run_output(shift=60 * MINUTE, question="recap of the last 24 hours")
        store.save_run(older)
        store.save_run(newer)

        runs = store.list_runs()
        assert [r["runId"] for r in runs] == [newer.context.run_id, older.context.run_id]
        assert runs[0]["question"] == "recap of the last 24 hours"
        assert "question" not in runs[1]
        assert runs[0]["scopeMode"] == "all"
        assert runs[1]["timeline"] == 3
        assert store.list_runs(limit=1)[0]["runId"] == newer.context.run_id

    def test_filter_by_client(self, store, run_output):
        store.save_run(run_output())
        assert store.list_runs(client="cursor") == []
        assert len(store.list_runs(client="codex")) == 1

    def test_load_latest(self, store, run_output):
        assert store.load_latest() is None
        store.save_run(run_output())
        assert store.load_latest("cursor") is None
        assert store.load_latest("codex")["context"]["client"] == "codex"

    def test_latest_follows_save_order_not_activity(self, store, run_output):
        recent_session = run_output()
        old_session = run_output(shift=-3 * 365 * 24 * 60 * MINUTE)
        store.save_run(recent_session, created_at=BASE_TS + 100 * MINUTE)
        store.save_run(old_session, created_at=BASE_TS + 200 * MINUTE)

        assert store.load_latest()["context"]["runId"] == old_session.context.run_id
        assert store.load_latest("codex")["context"]["runId"] == old_session.context.run_id
        assert [r["runId"] for r in store.list_runs()] == [
            old_session.context.run_id, recent_session.context.run_id,
        ]

    def test_same_millisecond_saves_keep_insert_order(self, store, run_output):
        first, second = run_output(), run_output(shift=MINUTE)
        store.save_run(second, created_at=BASE_TS)
        store.save_run(first, created_at=BASE_TS)
        assert store.load_latest()["context"]["runId"] == first.context.run_id

    def test_meta(self, store):
        assert store.get_meta("schema_version") == str(SCHEMA_VERSION)
        store.set_meta("k", "v1")
        store.set_meta("k", "v2")
        assert store.get_meta("k") == "v2"
        assert store.get_meta("missing") is None

    def test_context_manager_closes(self, tmp_path):
        with RunStore(tmp_path / "runs.db") as s:
            s.count()
        assert s._conn is None


class TestMigration:

    def test_adds_created_at_to_old_database(self, tmp_path, run_output):
        db_path = tmp_path / "old.db"
        conn = sqlite3.connect(str(db_path))
        conn.executescript("""
            CREATE TABLE runs (
                run_id TEXT PRIMARY KEY,
                client TEXT NOT NULL,
                started_at INTEGER NOT NULL,
                ended_at INTEGER NOT NULL,
                question TEXT,
                scope_mode TEXT,
                summary TEXT NOT NULL,
                payload TEXT NOT NULL
            );
        """)
        conn.execute(
            "INSERT INTO runs (run_id, client, started_at, ended_at, summary, payload) "
            "VALUES ('old-run', 'codex', ?, ?, ?, ?)",
            (BASE_TS, BASE_TS, '{"runId": "old-run"}', '{"context": {"runId": "old-run"}}'),
        )
        conn.commit()
        conn.close()

        with RunStore(db_path) as store:
            columns = {row[1] for row in store.conn.execute("PRAGMA table_info(runs)")}
            assert "created_at" in columns
            assert store.get_meta("schema_version") == str(SCHEMA_VERSION)
            row = store.conn.execute(
                "SELECT created_at FROM runs WHERE run_id = 'old-run'"
            ).fetchone()
            assert row["created_at"] == BASE_TS

            output = run_output(question="recap of the last 24 hours")
            store.save_run(output)
            assert store.list_runs()[0]["question"] == "recap of the last 24 hours"
            assert store.load_latest()["context"]["runId"] == output.context.run_id
