"""
Exception taxonomy for the kanban engine.

Domain errors (StageNotFound, TicketNotFound, TicketAlreadyAssigned) come
from the board model. Storage errors (AlreadyExists, NotFound, EngineFailure)
come from the store and the write-through façade. SerializationFailure means
a persisted record no longer matches the schema and is not recoverable at
runtime.
"""


class KanbanError(Exception):
    """Base class for all kanban engine errors."""
    pass


class StageNotFound(KanbanError):
    """Raised when a stage name does not exist in the project."""

    def __init__(self, name: str):
        super().__init__(f"stage not found: {name!r}")
        self.name = name


class TicketNotFound(KanbanError):
    """Raised when no stage holds a ticket with the given identifier."""

    def __init__(self, ticket_id: str):
        super().__init__(f"ticket does not exist: {ticket_id!r}")
        self.ticket_id = ticket_id


class TicketAlreadyAssigned(KanbanError):
    """Raised when a ticket's identifier is already used on the board or in finalized."""

    def __init__(self, ticket_id: str):
        super().__init__(f"ticket already belongs to this project: {ticket_id!r}")
        self.ticket_id = ticket_id


class AlreadyExists(KanbanError):
    """Raised when creating a project whose identifier is already stored."""

    def __init__(self, project_id: str):
        super().__init__(f"project already exists for ID {project_id!r}")
        self.project_id = project_id


class NotFound(KanbanError):
    """Raised when an operation targets a project that is not stored."""

    def __init__(self, project_id: str, where: str = "active"):
        super().__init__(f"project does not exist in {where}: {project_id!r}")
        self.project_id = project_id
        self.where = where


class SerializationFailure(KanbanError):
    """Raised when a project record cannot be (de)serialized."""
    pass


class EngineFailure(KanbanError):
    """Wraps an I/O error from the storage engine with operation context."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation}: {cause}")
        self.operation = operation
        self.cause = cause


class ConfigError(KanbanError):
    """Raised when configuration is invalid or unreadable."""
    pass
