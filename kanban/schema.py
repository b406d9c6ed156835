"""
Kanban board schema: projects, stages and tickets.

A Project owns an ordered pipeline of Stages; tickets move through it
left-to-right:
  Todo → In Progress → Testing → Done → (finalized)

Each Ticket sits in exactly one Stage of its Project, or in the project's
finalized list once its active lifecycle has ended.
"""
import copy
import uuid
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple, Union

from .errors import StageNotFound, TicketNotFound, TicketAlreadyAssigned, SerializationFailure


DEFAULT_STAGES = ("Todo", "In Progress", "Testing", "Done")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Mint a globally unique identifier."""
    return str(uuid.uuid4())


class Direction(Enum):
    """Mutually exclusive movement directions along a list."""
    FORWARD = 1
    BACKWARD = -1

    @property
    def step(self) -> int:
        """Signed index offset, positive is forward."""
        return self.value

    def invert(self) -> "Direction":
        return Direction.BACKWARD if self is Direction.FORWARD else Direction.FORWARD


@dataclass
class Ticket:
    """A unit of work sitting in one stage of a project."""

    ticket_id: str
    title: str = ""
    summary: str = ""              # Short overview
    details: str = ""              # Full free-text details
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.ticket_id:
            raise ValueError("Ticket requires an identifier; use NewTicket for unassigned work")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "title": self.title,
            "summary": self.summary,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ticket":
        return cls(
            ticket_id=data["ticket_id"],
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            details=data.get("details", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class NewTicket:
    """Request to create a ticket. Has no identifier until assigned."""

    title: str
    summary: str = ""
    details: str = ""

    def mint(self) -> Ticket:
        """Turn the request into a stored ticket with a fresh ID and timestamp."""
        return Ticket(
            ticket_id=new_id(),
            title=self.title,
            summary=self.summary,
            details=self.details,
            created_at=utc_now(),
        )


TicketRef = Union[Ticket, str]


def _ticket_id(ticket: TicketRef) -> str:
    return ticket if isinstance(ticket, str) else ticket.ticket_id


@dataclass
class Stage:
    """A named step in the pipeline holding an ordered list of tickets."""

    name: str = ""
    tickets: List[Ticket] = field(default_factory=list)

    def index(self, ticket: TicketRef) -> Optional[int]:
        ticket_id = _ticket_id(ticket)
        for ii, t in enumerate(self.tickets):
            if t.ticket_id == ticket_id:
                return ii
        return None

    def contains(self, ticket: TicketRef) -> bool:
        return self.index(ticket) is not None

    def _assign(self, ticket: Union[NewTicket, Ticket]) -> Ticket:
        """Append a ticket to the tail, minting an ID for new tickets.

        No project-wide duplicate check; go through Project.assign_ticket.
        """
        if isinstance(ticket, NewTicket):
            ticket = ticket.mint()
        self.tickets.append(ticket)
        return ticket

    def take(self, ticket: TicketRef) -> Optional[Ticket]:
        """Remove and return the ticket, or None if it isn't here."""
        ii = self.index(ticket)
        if ii is None:
            return None
        return self.tickets.pop(ii)

    def update(self, ticket: Ticket) -> bool:
        """Replace the ticket with the same ID in place. False if absent."""
        ii = self.index(ticket)
        if ii is None:
            return False
        self.tickets[ii] = ticket
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "tickets": [t.to_dict() for t in self.tickets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stage":
        return cls(
            name=data["name"],
            tickets=[Ticket.from_dict(t) for t in data.get("tickets", [])],
        )


@dataclass
class Project:
    """A context for an ordered pipeline of stages and their tickets."""

    project_id: str = ""           # Empty until created
    name: str = ""
    stages: List[Stage] = field(default_factory=list)
    finalized: List[Ticket] = field(default_factory=list)

    @classmethod
    def new(cls, name: str, stages: Optional[List[str]] = None) -> "Project":
        """Build a project with a fresh ID and the given (or default) pipeline."""
        if not name or not name.strip():
            raise ValueError("project name required")
        names = DEFAULT_STAGES if stages is None else stages
        return cls(
            project_id=new_id(),
            name=name,
            stages=[Stage(name=n) for n in names],
        )

    # ── Stages ──────────────────────────────────────────────

    def make_stage(self, name: str) -> Stage:
        """Append a new empty stage to the pipeline."""
        stage = Stage(name=name)
        self.stages.append(stage)
        return stage

    def list_stages(self) -> List[Stage]:
        return self.stages

    def stage_index(self, name: str) -> Optional[int]:
        for ii, s in enumerate(self.stages):
            if s.name == name:
                return ii
        return None

    def find_stage(self, name: str) -> Optional[Stage]:
        ii = self.stage_index(name)
        return None if ii is None else self.stages[ii]

    def rename_stage(self, name: str, new_name: str) -> None:
        stage = self.find_stage(name)
        if stage is None:
            raise StageNotFound(name)
        stage.name = new_name

    def move_stage(self, name: str, direction: Direction) -> bool:
        """
        Swap the named stage with its neighbour in the given direction.

        Returns False when the stage is unknown or already at that boundary.
        """
        ii = self.stage_index(name)
        if ii is None:
            return False
        jj = ii + direction.step
        if jj < 0 or jj > len(self.stages) - 1:
            return False
        self.stages[ii], self.stages[jj] = self.stages[jj], self.stages[ii]
        return True

    # ── Tickets ─────────────────────────────────────────────

    def _locate(self, ticket: TicketRef) -> Optional[Tuple[int, int]]:
        """Return (stage index, ticket index) for the ticket, if on the board."""
        for si, s in enumerate(self.stages):
            ti = s.index(ticket)
            if ti is not None:
                return si, ti
        return None

    def contains(self, ticket: TicketRef) -> bool:
        return self._locate(ticket) is not None

    def is_finalized(self, ticket: TicketRef) -> bool:
        ticket_id = _ticket_id(ticket)
        return any(t.ticket_id == ticket_id for t in self.finalized)

    def assign_ticket(self, stage_name: str, ticket: Union[NewTicket, Ticket]) -> Ticket:
        """
        Add a ticket to the tail of the named stage.

        A NewTicket gets a fresh identifier and creation time. Returns the
        stored Ticket.

        Raises:
            StageNotFound: no stage has that name (no stage is created).
            TicketAlreadyAssigned: the ticket's identifier is already used in this project.
        """
        stage = self.find_stage(stage_name)
        if stage is None:
            raise StageNotFound(stage_name)
        if isinstance(ticket, Ticket) and (self.contains(ticket) or self.is_finalized(ticket)):
            raise TicketAlreadyAssigned(ticket.ticket_id)
        return stage._assign(ticket)

    def update_ticket(self, ticket: Ticket) -> None:
        """Replace an existing ticket in place. Raises TicketNotFound."""
        for s in self.stages:
            if s.update(ticket):
                return
        raise TicketNotFound(ticket.ticket_id)

    def _shift(self, ticket: TicketRef, direction: Direction) -> bool:
        loc = self._locate(ticket)
        if loc is None:
            return False
        si, ti = loc
        dest = si + direction.step
        if dest < 0 or dest > len(self.stages) - 1:
            return False
        moved = self.stages[si].tickets.pop(ti)
        self.stages[dest].tickets.append(moved)
        return True

    def progress_ticket(self, ticket: TicketRef) -> bool:
        """Move the ticket to the tail of the next stage. No-op on the last stage."""
        return self._shift(ticket, Direction.FORWARD)

    def regress_ticket(self, ticket: TicketRef) -> bool:
        """Move the ticket to the tail of the previous stage. No-op on the first stage."""
        return self._shift(ticket, Direction.BACKWARD)

    def move_ticket(self, ticket: TicketRef, direction: Direction) -> bool:
        """Reorder a ticket within its own stage; FORWARD moves it towards the tail."""
        loc = self._locate(ticket)
        if loc is None:
            return False
        si, ti = loc
        tickets = self.stages[si].tickets
        tj = ti + direction.step
        if tj < 0 or tj > len(tickets) - 1:
            return False
        tickets[ti], tickets[tj] = tickets[tj], tickets[ti]
        return True

    def finalize_ticket(self, ticket: TicketRef) -> bool:
        """Take the ticket off the board into the finalized archive. Idempotent."""
        loc = self._locate(ticket)
        if loc is None:
            return False
        si, ti = loc
        self.finalized.append(self.stages[si].tickets.pop(ti))
        return True

    def stage_for_ticket(self, ticket: TicketRef) -> Stage:
        """Return the stage holding the ticket, or an empty Stage."""
        loc = self._locate(ticket)
        if loc is None:
            return Stage()
        return self.stages[loc[0]]

    def list_tickets(self, stage_name: str) -> List[Ticket]:
        stage = self.find_stage(stage_name)
        return [] if stage is None else stage.tickets

    # ── Serialization ───────────────────────────────────────

    def clone(self) -> "Project":
        """Deep copy, so the caller can mutate without aliasing."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "name": self.name,
            "stages": [s.to_dict() for s in self.stages],
            "finalized": [t.to_dict() for t in self.finalized],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """Deserialize from dict. Raises SerializationFailure on malformed data."""
        try:
            return cls(
                project_id=data["project_id"],
                name=data["name"],
                stages=[Stage.from_dict(s) for s in data.get("stages", [])],
                finalized=[Ticket.from_dict(t) for t in data.get("finalized", [])],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SerializationFailure(f"deserializing project: {e}") from e
