"""SQLAlchemy models for the ticket store."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class TicketStatus(StrEnum):
    """Ticket lifecycle status."""

    PENDING = "pending"
    BRANCHING = "branching"
    WORKING = "working"
    STOPPED = "stopped"
    CLOSED = "closed"
    ERROR = "error"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form SQLite hands back."""
    return datetime.now(UTC).replace(tzinfo=None)


def working_branch_name(ticket_id: str) -> str:
    """Branch a ticket's changes are made on."""
    return f"copilot/{ticket_id}"


def review_branch_name(ticket_id: str) -> str:
    """Throwaway review branch cut from the working branch."""
    return f"test/copilot/{ticket_id}"


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Ticket(Base):
    """Ticket model - a unit of work and its lifecycle state."""

    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    stopped_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __init__(
        self,
        id: str,
        description: str,
        seq: int = 0,
        name: str | None = None,
        status: str | None = None,
        created_at: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id
        self.seq = seq
        self.name = name if name is not None else id
        self.description = description
        self.status = status if status is not None else TicketStatus.PENDING.value
        self.created_at = created_at if created_at is not None else utcnow()

    @property
    def ticket_status(self) -> TicketStatus:
        """Get status as TicketStatus enum."""
        return TicketStatus(self.status)

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id!r}, status={self.status!r})>"
