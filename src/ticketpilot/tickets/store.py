"""TicketStore - CRUD over ticket records."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select

from ticketpilot.tickets.database import TicketDatabase
from ticketpilot.tickets.exceptions import TicketExistsError, TicketNotFoundError
from ticketpilot.tickets.models import Ticket, TicketStatus
from ticketpilot.tickets.transitions import validate_transition

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.orm import Session

# Fields callers may change through update_ticket; id, seq and created_at are immutable
UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "status",
        "started_at",
        "stopped_at",
        "closed_at",
        "branch",
        "error",
        "summary",
    }
)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class TicketStore:
    """Persistent ticket records backed by SQLite.

    Lookups by id or name are case-insensitive. Status changes go through the
    ticket state machine, so an illegal transition never reaches the database.
    """

    def __init__(self, db_path: str | Path = "tickets.db") -> None:
        """Initialize the store, creating the database and tables if needed.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db = TicketDatabase(db_path)
        self._db.create_tables()

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    def list_tickets(self, status: TicketStatus | None = None) -> list[Ticket]:
        """List tickets in store order (the order they were created in).

        Args:
            status: Only return tickets in this status (optional)
        """
        with self._db.session() as session:
            stmt = select(Ticket)
            if status is not None:
                stmt = stmt.where(Ticket.status == status.value)
            stmt = stmt.order_by(Ticket.seq)
            return list(session.execute(stmt).scalars().all())

    def find_ticket(self, id_or_name: str) -> Ticket | None:
        """Find a ticket by id or name, case-insensitively. Returns None if absent."""
        with self._db.session() as session:
            return self._lookup(session, id_or_name)

    def get_ticket(self, id_or_name: str) -> Ticket:
        """Get a ticket by id or name.

        Raises:
            TicketNotFoundError: If no ticket matches
        """
        ticket = self.find_ticket(id_or_name)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket not found: {id_or_name}")
        return ticket

    def create_ticket(
        self,
        ticket_id: str,
        description: str,
        created_at: datetime | None = None,
    ) -> Ticket:
        """Create a pending ticket whose name equals its id.

        Args:
            ticket_id: Unique ticket id, also used for branch and worktree names
            description: Free-text description handed to the agent
            created_at: Creation time (defaults to now)

        Raises:
            TicketExistsError: If a ticket with this id already exists
        """
        ticket_id = ticket_id.strip()
        if not ticket_id:
            raise ValueError("Ticket id must not be empty")

        with self._db.session() as session:
            existing = session.execute(
                select(Ticket).where(func.lower(Ticket.id) == ticket_id.lower())
            ).scalar_one_or_none()
            if existing is not None:
                raise TicketExistsError(f"Ticket '{existing.id}' already exists")

            next_seq = (session.execute(select(func.max(Ticket.seq))).scalar() or 0) + 1
            ticket = Ticket(
                id=ticket_id,
                description=description,
                seq=next_seq,
                created_at=_naive_utc(created_at) if created_at is not None else None,
            )
            session.add(ticket)
            session.commit()
            session.refresh(ticket)
            return ticket

    def import_tickets(self, entries: Iterable[tuple[str, str]]) -> list[Ticket]:
        """Create tickets from (id, description) pairs, skipping ids already present."""
        created = []
        for ticket_id, description in entries:
            if self.find_ticket(ticket_id) is not None:
                continue
            created.append(self.create_ticket(ticket_id, description))
        return created

    def update_ticket(self, ticket_id: str, **fields: Any) -> Ticket:
        """Update ticket fields. Only provided, non-None fields are written.

        Args:
            ticket_id: The ticket's id
            **fields: Any of UPDATABLE_FIELDS; ``status`` may be a TicketStatus or its value

        Returns:
            The updated Ticket

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
            InvalidTransitionError: If the status change is not allowed
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update ticket fields: {', '.join(sorted(unknown))}")

        with self._db.session() as session:
            ticket = session.get(Ticket, ticket_id)
            if ticket is None:
                raise TicketNotFoundError(f"Ticket not found: {ticket_id}")

            status = fields.pop("status", None)
            if status is not None:
                target = TicketStatus(status)
                validate_transition(ticket.ticket_status, target)
                ticket.status = target.value

            for name, value in fields.items():
                if value is None:
                    continue
                if isinstance(value, datetime):
                    value = _naive_utc(value)
                setattr(ticket, name, value)

            session.commit()
            session.refresh(ticket)
            return ticket

    def delete_ticket(self, ticket_id: str) -> bool:
        """Delete a ticket record. Returns False if it did not exist."""
        with self._db.session() as session:
            ticket = session.get(Ticket, ticket_id)
            if ticket is None:
                return False
            session.delete(ticket)
            session.commit()
            return True

    @staticmethod
    def _lookup(session: Session, id_or_name: str) -> Ticket | None:
        key = id_or_name.strip().lower()
        stmt = (
            select(Ticket)
            .where(or_(func.lower(Ticket.id) == key, func.lower(Ticket.name) == key))
            .order_by(Ticket.seq)
        )
        return session.execute(stmt).scalars().first()
