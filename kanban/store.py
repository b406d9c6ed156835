"""
Project storage backend (SQLite).

Holds serialized Project records keyed by project ID in two partitions:
the ``projects`` table (active) and the ``archived_projects`` table. A
record lives in exactly one of them; archive/restore move it inside a
single transaction.
"""
import sqlite3
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Iterator
from datetime import datetime, timezone

from .schema import Project
from .errors import AlreadyExists, NotFound, SerializationFailure, EngineFailure

logger = logging.getLogger(__name__)

ACTIVE = "projects"
ARCHIVED = "archived_projects"
PARTITIONS = (ACTIVE, ARCHIVED)

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "kanban" / "kanban.db"


def _connect(db_path: str, busy_timeout_ms: int) -> sqlite3.Connection:
    """Open a connection in autocommit mode with WAL and a bounded busy timeout."""
    conn = sqlite3.connect(
        db_path,
        timeout=busy_timeout_ms / 1000.0,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def _encode(project: Project) -> str:
    try:
        return json.dumps(project.to_dict())
    except (TypeError, ValueError) as e:
        raise SerializationFailure(f"serializing project {project.project_id!r}: {e}") from e


def _decode(data: str) -> Project:
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, TypeError) as e:
        raise SerializationFailure(f"deserializing project: {e}") from e
    return Project.from_dict(payload)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectStore:
    """SQLite-backed store for Project records."""

    def __init__(self, db_path: Optional[str] = None, busy_timeout_ms: int = 5000):
        """Open the database file and create the partition tables if needed."""
        if db_path is None:
            db_path = str(DEFAULT_DB_PATH)
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = _connect(self.db_path, busy_timeout_ms)
        except sqlite3.Error as e:
            raise self._failure(f"opening database file {self.db_path}", e) from e
        try:
            self._init_schema()
        except Exception:
            self._db.close()
            raise

    def _init_schema(self) -> None:
        """Create both partition tables if they don't exist."""
        with self._transaction("initializing tables") as conn:
            for table in PARTITIONS:
                conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        project_id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        data TEXT NOT NULL,  -- JSON-serialized Project
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{ACTIVE}_name ON {ACTIVE}(name)")

    # ── Engine plumbing ─────────────────────────────────────

    @staticmethod
    def _failure(operation: str, error: sqlite3.Error) -> EngineFailure:
        logger.error(f"Storage engine error while {operation}: {error}")
        return EngineFailure(operation, error)

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run the block inside BEGIN IMMEDIATE ... COMMIT, rolling back on any error."""
        try:
            self._db.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise self._failure(operation, e) from e
        try:
            yield self._db
            self._db.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(operation)
            raise self._failure(operation, e) from e
        except BaseException:
            self._rollback(operation)
            raise

    def _rollback(self, operation: str) -> None:
        try:
            self._db.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning(f"Rollback failed while {operation}: {e}")

    @contextmanager
    def _read(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            yield self._db
        except sqlite3.Error as e:
            raise self._failure(operation, e) from e

    # ── Writes ──────────────────────────────────────────────

    def create(self, project: Project) -> None:
        """
        Write a new project to the active partition.

        Raises:
            ValueError: the project has no ID or no name.
            AlreadyExists: a record with this ID exists in either partition.
            EngineFailure: the database write failed.
        """
        if not project.project_id:
            raise ValueError("project ID required")
        if not project.name.strip():
            raise ValueError("project name required")
        data = _encode(project)
        with self._transaction(f"creating project {project.project_id}") as conn:
            for table in PARTITIONS:
                row = conn.execute(
                    f"SELECT 1 FROM {table} WHERE project_id = ?",
                    (project.project_id,)
                ).fetchone()
                if row:
                    raise AlreadyExists(project.project_id)
            now = _now()
            conn.execute(
                f"INSERT INTO {ACTIVE} (project_id, name, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (project.project_id, project.name, data, now, now)
            )

    def save(self, *projects: Project) -> List[str]:
        """
        Update existing active projects in one transaction.

        Never creates a record. Returns the IDs that had no active record
        (an empty string stands for a project without an ID) so the caller
        can prune them.
        """
        missing: List[str] = []
        with self._transaction("saving projects") as conn:
            now = _now()
            for p in projects:
                if not p.project_id:
                    missing.append("")
                    continue
                cur = conn.execute(
                    f"UPDATE {ACTIVE} SET name = ?, data = ?, updated_at = ? WHERE project_id = ?",
                    (p.name, _encode(p), now, p.project_id)
                )
                if cur.rowcount == 0:
                    missing.append(p.project_id)
        if missing:
            logger.warning(f"Skipped saving {len(missing)} project(s) with no active record: {missing}")
        return missing

    def archive(self, project_id: str) -> None:
        """Move a project from the active to the archived partition."""
        self._move(project_id, ACTIVE, ARCHIVED, f"archiving project {project_id}")

    def restore(self, project_id: str) -> None:
        """Move a project from the archived back to the active partition."""
        self._move(project_id, ARCHIVED, ACTIVE, f"restoring project {project_id}")

    def _move(self, project_id: str, source: str, dest: str, operation: str) -> None:
        with self._transaction(operation) as conn:
            row = conn.execute(
                f"SELECT project_id, name, data, created_at FROM {source} WHERE project_id = ?",
                (project_id,)
            ).fetchone()
            if not row:
                raise NotFound(project_id, where=source)
            conn.execute(f"DELETE FROM {source} WHERE project_id = ?", (project_id,))
            conn.execute(
                f"INSERT INTO {dest} (project_id, name, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (row["project_id"], row["name"], row["data"], row["created_at"], _now())
            )

    # ── Reads ───────────────────────────────────────────────

    def _find_in(self, table: str, project_id: str) -> Optional[Project]:
        with self._read(f"finding project {project_id}") as conn:
            row = conn.execute(
                f"SELECT data FROM {table} WHERE project_id = ?",
                (project_id,)
            ).fetchone()
        if not row:
            return None
        return _decode(row["data"])

    def find(self, project_id: str) -> Optional[Project]:
        """Retrieve an active project by ID, or None."""
        return self._find_in(ACTIVE, project_id)

    def find_archived(self, project_id: str) -> Optional[Project]:
        """Retrieve an archived project by ID, or None."""
        return self._find_in(ARCHIVED, project_id)

    def lookup(self, name: str) -> Optional[Project]:
        """Return the first active project with the given name, or None."""
        with self._read(f"looking up project {name!r}") as conn:
            row = conn.execute(
                f"SELECT data FROM {ACTIVE} WHERE name = ? ORDER BY rowid LIMIT 1",
                (name,)
            ).fetchone()
        return _decode(row["data"]) if row else None

    def _list(self, table: str) -> List[Project]:
        with self._read(f"listing {table}") as conn:
            rows = conn.execute(f"SELECT data FROM {table} ORDER BY rowid").fetchall()
        return [_decode(row["data"]) for row in rows]

    def list(self) -> List[Project]:
        """List all active projects."""
        return self._list(ACTIVE)

    def list_archived(self) -> List[Project]:
        """List all archived projects."""
        return self._list(ARCHIVED)

    def count(self) -> int:
        """Number of active projects."""
        with self._read("counting projects") as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {ACTIVE}").fetchone()[0]

    def load(self, projects: List[Project]) -> None:
        """
        Overwrite caller-owned projects in place with their stored content.

        If the first project has no ID the whole list is replaced with
        ``list()``. Projects with no active record become a blank Project.
        """
        if projects and not projects[0].project_id:
            projects[:] = self.list()
            return
        for ii, p in enumerate(projects):
            found = self.find(p.project_id) if p.project_id else None
            projects[ii] = found if found is not None else Project()

    def close(self) -> None:
        """Release the database handle."""
        self._db.close()

    def __enter__(self) -> "ProjectStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
