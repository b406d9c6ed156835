"""Shared test fixtures for the kanban engine tests."""

import pytest

from kanban.schema import Project, Stage
from kanban.store import ProjectStore
from kanban.storage import Storage


@pytest.fixture
def db_path(tmp_path):
    """Path to a fresh SQLite file inside the test's temp directory."""
    return str(tmp_path / "kanban.db")


@pytest.fixture
def store(db_path):
    store = ProjectStore(db_path)
    yield store
    store.close()


@pytest.fixture
def storage(db_path):
    storage = Storage.open(db_path)
    yield storage
    storage.close()


@pytest.fixture
def board():
    """Project P1 with a three-stage pipeline."""
    return Project(
        project_id="p1",
        name="P1",
        stages=[Stage(name="Todo"), Stage(name="Doing"), Stage(name="Done")],
    )
