from __future__ import annotations

import hashlib
import json
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Literal, Optional

from apigraph.errors import DeploymentStoreError


DeploymentState = Literal["pending", "deployed"]


def _now_ts() -> int:
    return int(time.time())


def deployment_id_for(api_name: str, fingerprint: str) -> str:
    # stable id: the same API shape always maps to the same deployment
    return hashlib.sha1(f"{api_name}|{fingerprint}".encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class DeploymentRecord:
    """One deployment per distinct fingerprint of an API."""

    deployment_id: str
    api_name: str
    fingerprint: str
    stage_name: str
    state: DeploymentState
    depends_on: tuple[str, ...]
    created_at: int


class DeploymentSQLiteStore:
    """SQLite-backed deployment history, one file per state directory."""

    SCHEMA_VERSION = "1.0"

    def __init__(self, db_path: Path):
        self.db_path = db_path
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as exc:
            raise DeploymentStoreError(
                f"cannot open deployment store {db_path}: {exc}",
                details={"db_path": str(db_path)},
            ) from exc

    # ----------------------------
    # Connection / schema
    # ----------------------------

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.db_path))
        con.row_factory = sqlite3.Row
        return con

    @contextmanager
    def _session(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._connect() as con:
                yield con
        except sqlite3.Error as exc:
            raise DeploymentStoreError(
                f"deployment store {action} failed: {exc}",
                details={"db_path": str(self.db_path), "action": action},
            ) from exc

    def _init_db(self) -> None:
        with self._connect() as con:
            con.execute("PRAGMA journal_mode=WAL;")

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS deployments (
                    id TEXT PRIMARY KEY,
                    api_name TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    stage_name TEXT NOT NULL,
                    state TEXT NOT NULL,
                    depends_on TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    UNIQUE(api_name, fingerprint)
                );
                """
            )
            con.execute(
                "CREATE INDEX IF NOT EXISTS idx_deployments_api ON deployments(api_name, created_at);"
            )

            if self._get_meta(con, "schema_version") is None:
                self._set_meta(con, "schema_version", self.SCHEMA_VERSION)

    # ----------------------------
    # Deployments
    # ----------------------------

    def get_deployment(self, api_name: str, fingerprint: str) -> Optional[DeploymentRecord]:
        with self._session("read") as con:
            row = con.execute(
                """
                SELECT id, api_name, fingerprint, stage_name, state, depends_on, created_at
                FROM deployments WHERE api_name=? AND fingerprint=?
                """,
                (api_name, fingerprint),
            ).fetchone()
            return self._record(row) if row else None

    def insert_deployment(
        self,
        api_name: str,
        fingerprint: str,
        stage_name: str,
        depends_on: Iterable[str],
    ) -> tuple[DeploymentRecord, bool]:
        """Record a deployed fingerprint.

        Returns (record, created). An already-recorded fingerprint is left
        untouched and returned with created=False.
        """
        did = deployment_id_for(api_name, fingerprint)
        with self._session("insert") as con:
            cur = con.execute(
                """
                INSERT OR IGNORE INTO deployments(
                    id, api_name, fingerprint, stage_name, state, depends_on, created_at
                )
                VALUES(?,?,?,?,?,?,?)
                """,
                (
                    did,
                    api_name,
                    fingerprint,
                    stage_name,
                    "deployed",
                    json.dumps(sorted(depends_on)),
                    _now_ts(),
                ),
            )
            created = cur.rowcount == 1

        record = self.get_deployment(api_name, fingerprint)
        if record is None:
            raise DeploymentStoreError(
                f"deployment {did} vanished after insert",
                details={"api_name": api_name, "fingerprint": fingerprint},
            )
        return record, created

    def latest_deployment(self, api_name: str) -> Optional[DeploymentRecord]:
        rows = self.list_deployments(api_name, limit=1)
        return rows[0] if rows else None

    def list_deployments(self, api_name: str, limit: int = 50) -> list[DeploymentRecord]:
        with self._session("list") as con:
            rows = con.execute(
                """
                SELECT id, api_name, fingerprint, stage_name, state, depends_on, created_at
                FROM deployments WHERE api_name=?
                ORDER BY created_at DESC, rowid DESC LIMIT ?
                """,
                (api_name, int(limit)),
            ).fetchall()
            return [self._record(r) for r in rows]

    # ----------------------------
    # internal helpers
    # ----------------------------

    def _record(self, row: sqlite3.Row) -> DeploymentRecord:
        return DeploymentRecord(
            deployment_id=row["id"],
            api_name=row["api_name"],
            fingerprint=row["fingerprint"],
            stage_name=row["stage_name"],
            state=row["state"],
            depends_on=tuple(json.loads(row["depends_on"])),
            created_at=row["created_at"],
        )

    def _get_meta(self, con: sqlite3.Connection, key: str) -> Optional[str]:
        row = con.execute("SELECT value FROM meta WHERE key=?", (key,)).fetchone()
        return row[0] if row else None

    def _set_meta(self, con: sqlite3.Connection, key: str, value: str) -> None:
        con.execute(
            """
            INSERT INTO meta(key, value) VALUES(?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
            (key, value),
        )
