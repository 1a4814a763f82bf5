"""
Ticket Infrastructure Models
============================

SQLAlchemy ORM models for the ticket store.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import date, time
from typing import Optional

from sqlalchemy import String, Text, Integer, Date, Time
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.infrastructure.database import Base
from helpdesk.config import TicketStatus, UserRole


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    # Store-assigned, never reused by the application
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Ticket content
    issue: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # People
    reported_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    branch: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    staff: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    status: Mapped[str] = mapped_column(String(50), nullable=False, default=TicketStatus.OPEN, index=True)

    # Reporting timestamps (local wall clock)
    date_reported: Mapped[date] = mapped_column(Date, nullable=False)
    time_reported: Mapped[time] = mapped_column(Time, nullable=False)

    # Resolution
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    date_closed: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class UserModel(Base):
    """
    Database model for the user roster.

    Maps to the 'users' table.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    firstname: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    lastname: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default=UserRole.USER)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    branch: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
