"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from typing import List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core import RepositoryException, DuplicateResourceException
from helpdesk.tickets.application import ITicketRepository, IUserRepository
from helpdesk.tickets.domain import Ticket, StaffAccount
from helpdesk.tickets.infrastructure.models import TicketModel, UserModel


# Columns a caller may filter on or write to; anything else is rejected
TICKET_FILTER_COLUMNS = ("department", "status", "staff", "reported_by", "branch")
TICKET_WRITABLE_COLUMNS = (
    "issue", "description", "reported_by", "branch", "department", "staff",
    "status", "resolution", "date_reported", "time_reported",
    "resolution_time", "date_closed",
)


def _to_ticket(model: TicketModel) -> Ticket:
    return Ticket(
        id=model.id,
        issue=model.issue,
        status=model.status,
        date_reported=model.date_reported,
        time_reported=model.time_reported,
        description=model.description,
        reported_by=model.reported_by,
        branch=model.branch,
        department=model.department,
        staff=model.staff,
        resolution=model.resolution,
        resolution_time=model.resolution_time,
        date_closed=model.date_closed,
    )


def _to_account(model: UserModel) -> StaffAccount:
    return StaffAccount(
        id=model.id,
        email=model.email,
        role=model.role,
        firstname=model.firstname,
        lastname=model.lastname,
        department=model.department,
        branch=model.branch,
    )


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Updates and deletes are single statements; the affected row count is
    what the service layer reasons about.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, values: dict) -> Ticket:
        """Create new ticket."""
        unknown = set(values) - set(TICKET_WRITABLE_COLUMNS)
        if unknown:
            raise RepositoryException(f"Unknown ticket fields: {sorted(unknown)}")

        model = TicketModel(**values)
        self._session.add(model)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create ticket: {e}") from e

        return _to_ticket(model)

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """Get ticket by id."""
        stmt = select(TicketModel).where(TicketModel.id == ticket_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_ticket(model) if model else None

    async def get_status(self, ticket_id: int) -> Optional[str]:
        stmt = select(TicketModel.status).where(TicketModel.id == ticket_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list(self, filters: dict) -> List[Ticket]:
        """List tickets with equality filters."""
        stmt = select(TicketModel)

        for column in TICKET_FILTER_COLUMNS:
            if filters.get(column) is not None:
                stmt = stmt.where(getattr(TicketModel, column) == filters[column])

        stmt = stmt.order_by(TicketModel.id.asc())

        result = await self._session.execute(stmt)
        return [_to_ticket(model) for model in result.scalars().all()]

    async def update(
        self,
        ticket_id: int,
        changes: dict,
        unless_status: Optional[str] = None
    ) -> int:
        """Update the given columns of one ticket."""
        unknown = set(changes) - set(TICKET_WRITABLE_COLUMNS)
        if unknown:
            raise RepositoryException(f"Unknown ticket fields: {sorted(unknown)}")

        stmt = update(TicketModel).where(TicketModel.id == ticket_id)
        if unless_status is not None:
            stmt = stmt.where(TicketModel.status != unless_status)
        stmt = stmt.values(**changes).execution_options(synchronize_session=False)

        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete(self, ticket_id: int) -> int:
        stmt = delete(TicketModel).where(TicketModel.id == ticket_id)
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_all(self) -> int:
        result = await self._session.execute(delete(TicketModel))
        return result.rowcount


class SQLAlchemyUserRepository(IUserRepository):
    """SQLAlchemy implementation of the user roster."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list(self) -> List[StaffAccount]:
        stmt = select(UserModel).order_by(UserModel.id.asc())
        result = await self._session.execute(stmt)
        return [_to_account(model) for model in result.scalars().all()]

    async def get_by_email(self, email: str) -> Optional[StaffAccount]:
        """Case-insensitive lookup by address."""
        stmt = select(UserModel).where(func.lower(UserModel.email) == email.strip().lower())
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return _to_account(model) if model else None

    async def create(self, account: StaffAccount) -> StaffAccount:
        if await self.get_by_email(account.email) is not None:
            raise DuplicateResourceException("User", account.email)

        model = UserModel(
            email=account.email.strip(),
            firstname=account.firstname,
            lastname=account.lastname,
            role=account.role,
            department=account.department,
            branch=account.branch,
        )
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateResourceException("User", account.email) from e

        return _to_account(model)
