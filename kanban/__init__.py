# Kanban engine: project/stage/ticket model and write-through project storage
#
# Components:
#   schema.py      - Data model (Project, Stage, Ticket, NewTicket, Direction)
#   store.py       - SQLite persistence layer (active + archived partitions)
#   cache.py       - In-memory ordered project buckets
#   storage.py     - Write-through façade composing cache and store
#   statemap.py    - Ordered get-or-create state map for per-frame consumers
#   config.py      - YAML/env configuration and logging setup
#   server.py      - Flask JSON API over the storage façade
from .errors import (
    KanbanError,
    StageNotFound,
    TicketNotFound,
    TicketAlreadyAssigned,
    AlreadyExists,
    NotFound,
    SerializationFailure,
    EngineFailure,
    ConfigError,
)
from .schema import Direction, NewTicket, Ticket, Stage, Project
from .store import ProjectStore
from .cache import Bucket, ProjectCache
from .storage import Storage
from .statemap import StateMap

__all__ = [
    "KanbanError",
    "StageNotFound",
    "TicketNotFound",
    "TicketAlreadyAssigned",
    "AlreadyExists",
    "NotFound",
    "SerializationFailure",
    "EngineFailure",
    "ConfigError",
    "Direction",
    "NewTicket",
    "Ticket",
    "Stage",
    "Project",
    "ProjectStore",
    "Bucket",
    "ProjectCache",
    "Storage",
    "StateMap",
]
