"""
Write-through project storage.

The façade the application talks to. Reads are served from the in-memory
cache; writes go to the SQLite store first and the cache is then rebuilt
from the store, so the two never silently diverge.

Per-project lifecycle:
  NonExistent --create--> Active --archive--> Archived --restore--> Active
  Active --save--> Active   (skipped when nothing changed)
"""
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .cache import ProjectCache
from .errors import NotFound
from .schema import Project
from .store import ProjectStore

logger = logging.getLogger(__name__)


class Storage:
    """Cache in front of a ProjectStore; only touches disk when something changed."""

    def __init__(self, store: ProjectStore, cache: Optional[ProjectCache] = None):
        self.store = store
        self.cache = cache if cache is not None else ProjectCache()
        self._lock = threading.RLock()

    @classmethod
    def open(cls, db_path: Optional[str] = None, busy_timeout_ms: int = 5000) -> "Storage":
        """Open the database at ``db_path`` and populate the cache from it."""
        store = ProjectStore(db_path, busy_timeout_ms=busy_timeout_ms)
        storage = cls(store)
        try:
            storage.populate()
        except Exception:
            store.close()
            raise
        return storage

    def populate(self) -> None:
        """Rebuild the cache from both store partitions."""
        with self._lock:
            active = self.store.list()
            archived = self.store.list_archived()
            self.cache.clear()
            for p in active:
                self.cache.active.add(p)
            for p in archived:
                self.cache.archived.add(p)
            logger.debug(f"Cache populated: {len(active)} active, {len(archived)} archived")

    def create(self, project: Project) -> None:
        """Persist a new project, then cache it. A failed write leaves the cache untouched."""
        with self._lock:
            self.store.create(project)
            self.cache.active.add(project)
            logger.info(f"Created project {project.project_id} ({project.name!r})")

    def save(self, *projects: Project) -> int:
        """
        Write the projects that differ from their cached copy.

        Every project must be active; saving an unknown or archived project
        raises NotFound before anything is written. Returns the number of
        projects written to the store.
        """
        with self._lock:
            changed = []
            for p in projects:
                cached = self.cache.active.find(p.project_id) if p.project_id else None
                if cached is None:
                    raise NotFound(p.project_id)
                if p == cached:
                    logger.debug(f"Project {p.project_id} unchanged, skipping save")
                    continue
                changed.append(p)
            if not changed:
                return 0
            missing = self.store.save(*changed)
            self.populate()
            if missing:
                raise NotFound(missing[0])
            return len(changed)

    @contextmanager
    def checkout(self, project_id: str) -> Iterator[Project]:
        """
        Hold the façade lock across a find → mutate → save cycle.

        Yields a private copy of the active project and saves it when the
        block exits cleanly. An exception inside the block discards the
        copy. Raises NotFound if the project is not active.
        """
        with self._lock:
            project = self.cache.active.find(project_id) if project_id else None
            if project is None:
                raise NotFound(project_id)
            yield project
            self.save(project)

    def load(self, projects: List[Project]) -> None:
        """
        Refresh caller-owned projects in place from the cache.

        If the first project has no ID the list is replaced with ``list()``.
        Projects that are no longer active become a blank Project so the
        caller can prune them.
        """
        with self._lock:
            if projects and not projects[0].project_id:
                projects[:] = self.cache.active.list()
                return
            for ii, p in enumerate(projects):
                found = self.cache.active.find(p.project_id) if p.project_id else None
                projects[ii] = found if found is not None else Project()

    def find(self, project_id: str) -> Optional[Project]:
        """Active project by ID (a private copy), or None."""
        with self._lock:
            return self.cache.active.find(project_id)

    def find_archived(self, project_id: str) -> Optional[Project]:
        with self._lock:
            return self.cache.archived.find(project_id)

    def list(self) -> List[Project]:
        with self._lock:
            return self.cache.active.list()

    def list_archived(self) -> List[Project]:
        with self._lock:
            return self.cache.archived.list()

    def count(self) -> int:
        with self._lock:
            return self.cache.active.count()

    def archive(self, project_id: str) -> None:
        """Move a project to the archived partition and resync the cache."""
        with self._lock:
            self.store.archive(project_id)
            self.populate()
            logger.info(f"Archived project {project_id}")

    def restore(self, project_id: str) -> None:
        """Move an archived project back to active and resync the cache."""
        with self._lock:
            self.store.restore(project_id)
            self.populate()
            logger.info(f"Restored project {project_id}")

    def close(self) -> None:
        """Release the underlying database handle."""
        with self._lock:
            self.store.close()

    def __enter__(self) -> "Storage":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
