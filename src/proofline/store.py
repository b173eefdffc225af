"""RunStore — SQLite persistence of pipeline runs, WAL mode."""

import json
import sqlite3
from pathlib import Path

import structlog

from proofline.ids import now_ms
from proofline.models import RunOutput
from proofline.serialization import run_summary, to_dict

logger = structlog.get_logger()

SCHEMA_VERSION = 2

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS runs (
    run_id      TEXT PRIMARY KEY,
    client      TEXT NOT NULL,
    started_at  INTEGER NOT NULL,
    ended_at    INTEGER NOT NULL,
    question    TEXT,
    scope_mode  TEXT,
    summary     TEXT NOT NULL,
    payload     TEXT NOT NULL,
    created_at  INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_runs_started ON runs(started_at);
CREATE INDEX IF NOT EXISTS idx_runs_client  ON runs(client);

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);
"""


class RunStore:
    """One row per run; the full camelCase RunOutput is kept as a JSON payload."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._migrated = False

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA_SQL)
        if not self._migrated:
            self._migrate()
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _migrate(self) -> None:
        """Add the save-time column to v1 databases, backfilled from started_at."""
        self._migrated = True
        current = self.get_meta("schema_version")
        version = int(current) if current else 1

        if version < 2:
            columns = {
                row[1] for row in
                self._conn.execute("PRAGMA table_info(runs)").fetchall()
            }
            with self._conn:
                if "created_at" not in columns:
                    self._conn.execute(
                        "ALTER TABLE runs ADD COLUMN created_at INTEGER NOT NULL DEFAULT 0"
                    )
                    self._conn.execute("UPDATE runs SET created_at = started_at")
            self.set_meta("schema_version", str(SCHEMA_VERSION))
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_runs_created ON runs(created_at)")

    def save_run(self, output: RunOutput, created_at: int | None = None) -> str:
        """Insert or replace a run, stamped with the save time. Returns the run id."""
        summary = run_summary(output)
        payload = to_dict(output)
        question = output.query.raw if output.query else None
        scope_mode = output.project_scope.mode if output.project_scope else None
        created_at = now_ms() if created_at is None else created_at

        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO runs "
                "(run_id, client, started_at, ended_at, question, scope_mode, summary, payload, "
                "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (output.context.run_id, output.context.client, output.context.started_at,
                 summary["endedAt"], question, scope_mode,
                 json.dumps(summary), json.dumps(payload, ensure_ascii=False), created_at),
            )
        logger.info("store.run_saved", run_id=output.context.run_id, db=str(self.db_path))
        return output.context.run_id

    def list_runs(self, limit: int = 20, client: str | None = None) -> list[dict]:
        """Run summaries, most recently saved first."""
        conditions = []
        params: list = []
        if client:
            conditions.append("client = ?")
            params.append(client)
        where = " AND ".join(conditions) if conditions else "1=1"
        sql = f"SELECT * FROM runs WHERE {where} ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(limit)

        runs = []
        for row in self.conn.execute(sql, params).fetchall():
            summary = json.loads(row["summary"])
            if row["question"]:
                summary["question"] = row["question"]
            if row["scope_mode"]:
                summary["scopeMode"] = row["scope_mode"]
            runs.append(summary)
        return runs

    def load_run(self, run_id: str) -> dict | None:
        row = self.conn.execute(
            "SELECT payload FROM runs WHERE run_id = ?", (run_id,)
        ).fetchone()
        return json.loads(row["payload"]) if row else None

    def load_latest(self, client: str | None = None) -> dict | None:
        """Serialized payload of the most recently saved run, optionally for one client."""
        if client:
            row = self.conn.execute(
                "SELECT payload FROM runs WHERE client = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (client,),
            ).fetchone()
        else:
            row = self.conn.execute(
                "SELECT payload FROM runs ORDER BY created_at DESC, rowid DESC LIMIT 1"
            ).fetchone()
        return json.loads(row["payload"]) if row else None

    def count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) as cnt FROM runs").fetchone()
        return row["cnt"]

    def get_meta(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        """Write to meta table (upsert)."""
        with self.conn:
            self.conn.execute(
                "INSERT INTO meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
