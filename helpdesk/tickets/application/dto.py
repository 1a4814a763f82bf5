"""
Ticket Application DTOs
=======================

Data Transfer Objects for the ticket API.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. JSON field names are camelCase
(`reportedBy`, `dateReported`, ...); snake_case is accepted on input too.
"""

from datetime import date, time
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from helpdesk.tickets.domain import Ticket, StaffAccount


RoleStr = Literal["user", "admin", "superadmin"]


class CamelModel(BaseModel):
    """Base model serializing to camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Request DTOs ==========

class TicketCreateDTO(CamelModel):
    """DTO for creating a ticket."""
    issue: str = Field(..., min_length=1, description="Short summary, usually the mail subject")
    description: Optional[str] = Field(None, description="Free text, usually the mail body")
    reported_by: Optional[str] = Field(None, description="Reporter email address")
    branch: Optional[str] = None
    department: Optional[str] = None
    staff: Optional[str] = Field(None, description="Assignee email address")
    status: str = Field(default="open", min_length=1, description="Ticket status")
    resolution: Optional[str] = None
    date_reported: Optional[date] = Field(None, description="Defaults to today")
    time_reported: Optional[time] = Field(None, description="Defaults to now")


class TicketUpdateDTO(CamelModel):
    """
    DTO for a partial ticket update.

    Only fields present in the payload are written. The ticket id is not
    part of the payload and can never change.
    """
    issue: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    reported_by: Optional[str] = None
    branch: Optional[str] = None
    department: Optional[str] = None
    staff: Optional[str] = None
    status: Optional[str] = Field(None, min_length=1)
    resolution: Optional[str] = None
    date_reported: Optional[date] = None
    time_reported: Optional[time] = None
    resolution_time: Optional[time] = None
    date_closed: Optional[date] = None

    def changes(self) -> dict:
        """Fields explicitly set by the caller, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


class TicketQueryDTO(BaseModel):
    """Query parameters for ticket listing."""
    department: Optional[str] = None
    status: Optional[str] = None
    staff: Optional[str] = None

    def filters(self) -> dict:
        return self.model_dump(exclude_none=True)


class UserCreateDTO(CamelModel):
    """DTO for adding a roster entry."""
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    role: RoleStr = "user"
    department: Optional[str] = None
    branch: Optional[str] = None


# ========== Response DTOs ==========

class TicketResponse(CamelModel):
    """Response model for a ticket."""
    id: int
    issue: str
    description: Optional[str] = None
    reported_by: Optional[str] = None
    branch: Optional[str] = None
    department: Optional[str] = None
    staff: Optional[str] = None
    status: str
    resolution: Optional[str] = None
    date_reported: date
    time_reported: time
    resolution_time: Optional[time] = None
    date_closed: Optional[date] = None

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            issue=ticket.issue,
            description=ticket.description,
            reported_by=ticket.reported_by,
            branch=ticket.branch,
            department=ticket.department,
            staff=ticket.staff,
            status=ticket.status,
            resolution=ticket.resolution,
            date_reported=ticket.date_reported,
            time_reported=ticket.time_reported,
            resolution_time=ticket.resolution_time,
            date_closed=ticket.date_closed,
        )


class CreatedResponse(BaseModel):
    """Response model for ticket creation."""
    id: int = Field(..., description="Identifier assigned by the store")


class ChangesResponse(BaseModel):
    """Response model for update and delete operations."""
    changes: int = Field(..., description="Number of rows changed")


class UserResponse(CamelModel):
    """Response model for a roster entry."""
    id: Optional[int] = None
    email: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    role: str
    department: Optional[str] = None
    branch: Optional[str] = None

    @classmethod
    def from_domain(cls, account: StaffAccount) -> "UserResponse":
        return cls(
            id=account.id,
            email=account.email,
            firstname=account.firstname,
            lastname=account.lastname,
            role=account.role,
            department=account.department,
            branch=account.branch,
        )

    def to_domain(self) -> StaffAccount:
        return StaffAccount(
            id=self.id,
            email=self.email,
            role=self.role,
            firstname=self.firstname,
            lastname=self.lastname,
            department=self.department,
            branch=self.branch,
        )
