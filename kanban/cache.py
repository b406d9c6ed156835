"""
In-memory project cache.

Two independent buckets (active, archived), each an ID → Project map plus
an explicit insertion-order list for stable listing. Pure bookkeeping: the
cache never touches persistent storage.
"""
from typing import Dict, List, Optional

from .schema import Project


class Bucket:
    """ID → Project map with an explicit insertion order."""

    def __init__(self):
        self.data: Dict[str, Project] = {}
        self.order: List[str] = []

    def add(self, project: Project) -> None:
        """Insert or overwrite; the order list only grows on first insertion."""
        if project.project_id not in self.data:
            self.order.append(project.project_id)
        self.data[project.project_id] = project.clone()

    def delete(self, project_id: str) -> bool:
        if project_id not in self.data:
            return False
        del self.data[project_id]
        self.order.remove(project_id)
        return True

    def find(self, project_id: str) -> Optional[Project]:
        p = self.data.get(project_id)
        return p.clone() if p is not None else None

    def contains(self, project_id: str) -> bool:
        return project_id in self.data

    def list(self) -> List[Project]:
        return [self.data[pid].clone() for pid in self.order]

    def count(self) -> int:
        return len(self.data)

    def clear(self) -> None:
        self.data = {}
        self.order = []


class ProjectCache:
    """Full materialization of active and archived projects."""

    def __init__(self):
        self.active = Bucket()
        self.archived = Bucket()

    def clear(self) -> None:
        """Reset both buckets before a full repopulation."""
        self.active.clear()
        self.archived.clear()
