"""
Tests for the SQLite project store: partitions, atomic moves, error wrapping.
"""
import sqlite3
from unittest.mock import patch

import pytest

from kanban.errors import AlreadyExists, NotFound, EngineFailure, SerializationFailure
from kanban.schema import NewTicket, Project
from kanban.store import ProjectStore, ACTIVE, ARCHIVED, _connect


def _ids(projects):
    return [p.project_id for p in projects]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Create / Find Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_store_create_and_find(store, board):
    """Test creating and retrieving a project"""
    board.assign_ticket("Todo", NewTicket(title="T1"))
    store.create(board)

    found = store.find("p1")
    assert found is not None
    assert found == board
    assert store.count() == 1


def test_store_find_missing_returns_none(store):
    assert store.find("nope") is None
    assert store.find_archived("nope") is None


def test_store_create_duplicate(store, board):
    store.create(board)
    with pytest.raises(AlreadyExists):
        store.create(board)
    assert store.count() == 1


def test_store_create_duplicate_of_archived(store, board):
    store.create(board)
    store.archive("p1")
    with pytest.raises(AlreadyExists):
        store.create(board)
    assert store.list() == []


def test_store_create_requires_id_and_name(store):
    with pytest.raises(ValueError):
        store.create(Project(project_id="", name="P"))
    with pytest.raises(ValueError):
        store.create(Project(project_id="x", name=" "))


def test_store_persists_across_reopen(db_path, board):
    with ProjectStore(db_path) as store:
        store.create(board)
    with ProjectStore(db_path) as store:
        assert store.find("p1") == board


def test_store_lookup_by_name(store):
    a = Project.new("Alpha")
    b = Project.new("Beta")
    store.create(a)
    store.create(b)
    assert store.lookup("Beta") == b
    assert store.lookup("Gamma") is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Save / List / Load Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_store_save_updates(store, board):
    store.create(board)
    board.name = "Renamed"
    board.assign_ticket("Doing", NewTicket(title="T1"))

    assert store.save(board) == []

    updated = store.find("p1")
    assert updated.name == "Renamed"
    assert len(updated.list_tickets("Doing")) == 1


def test_store_save_never_creates(store, board):
    """Saving unknown projects reports them instead of inserting"""
    store.create(board)
    stranger = Project.new("Stranger")

    missing = store.save(board, stranger, Project())

    assert missing == [stranger.project_id, ""]
    assert store.find(stranger.project_id) is None
    assert store.count() == 1


def test_store_save_skips_archived(store, board):
    store.create(board)
    store.archive("p1")
    board.name = "changed"
    assert store.save(board) == ["p1"]
    assert store.find_archived("p1").name == "P1"


def test_store_list_in_creation_order(store):
    projects = [Project.new(f"P{i}") for i in range(5)]
    for p in projects:
        store.create(p)
    assert _ids(store.list()) == _ids(projects)
    assert store.count() == 5


def test_store_load_in_place(store):
    a = Project.new("A")
    b = Project.new("B")
    store.create(a)
    store.create(b)
    a.name = "stale"

    slots = [Project(project_id=b.project_id), Project(project_id=a.project_id)]
    store.load(slots)

    assert slots == [b, store.find(a.project_id)]
    assert slots[1].name == "A"


def test_store_load_everything(store):
    a = Project.new("A")
    b = Project.new("B")
    store.create(a)
    store.create(b)

    slots = [Project()]
    store.load(slots)
    assert slots == [a, b]


def test_store_load_zeroes_missing(store, board):
    store.create(board)
    slots = [Project(project_id="p1"), Project(project_id="gone")]
    store.load(slots)
    assert slots[0] == board
    assert slots[1] == Project()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Archive / Restore Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_store_archive_moves_record(store, board):
    store.create(board)
    store.archive("p1")

    assert store.find("p1") is None
    assert store.list() == []
    assert store.count() == 0
    assert store.list_archived() == [board]


def test_store_restore_moves_back(store, board):
    store.create(board)
    store.archive("p1")
    store.restore("p1")

    assert store.find("p1") == board
    assert store.list_archived() == []


def test_store_archive_missing(store, board):
    with pytest.raises(NotFound):
        store.archive("nope")
    store.create(board)
    with pytest.raises(NotFound):
        store.restore("p1")


def test_store_archive_is_atomic(store, board):
    """A failed insert into the archive leaves the record active"""
    store.create(board)
    # Plant a conflicting archived row so the INSERT step fails mid-move.
    store._db.execute(
        f"INSERT INTO {ARCHIVED} (project_id, name, data, created_at, updated_at) "
        "VALUES ('p1', 'ghost', '{}', 'x', 'x')"
    )

    with pytest.raises(EngineFailure):
        store.archive("p1")

    assert store.find("p1") == board
    assert store.count() == 1


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Failure Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_store_corrupt_record(store, board):
    store.create(board)
    store._db.execute(f"UPDATE {ACTIVE} SET data = 'not json' WHERE project_id = 'p1'")

    with pytest.raises(SerializationFailure):
        store.find("p1")
    with pytest.raises(SerializationFailure):
        store.list()


def test_store_closed_handle_raises_engine_failure(db_path):
    store = ProjectStore(db_path)
    store.close()

    with pytest.raises(EngineFailure) as exc_info:
        store.count()
    assert "counting projects" in str(exc_info.value)

    with pytest.raises(EngineFailure):
        store.create(Project.new("late"))


def test_store_open_not_a_database(db_path):
    with open(db_path, "wb") as f:
        f.write(b"definitely not sqlite " * 64)

    with pytest.raises(EngineFailure) as exc_info:
        ProjectStore(db_path)
    assert "opening database file" in str(exc_info.value)


def test_store_schema_failure_closes_handle(db_path):
    """A failed table setup must not leak the open connection"""
    opened = []

    def _spy_connect(path, busy_timeout_ms):
        conn = _connect(path, busy_timeout_ms)
        opened.append(conn)
        return conn

    failure = EngineFailure("initializing tables", sqlite3.OperationalError("disk I/O error"))
    with patch("kanban.store._connect", side_effect=_spy_connect), \
            patch.object(ProjectStore, "_init_schema", side_effect=failure):
        with pytest.raises(EngineFailure):
            ProjectStore(db_path)

    assert len(opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")
