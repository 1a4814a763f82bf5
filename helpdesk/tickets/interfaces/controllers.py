"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for the ticket store and the user roster.

Controllers are thin - they delegate to application services and translate
application exceptions into HTTP errors.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import settings
from helpdesk.core import (
    ValidationException,
    DomainException,
    DuplicateResourceException,
    ResourceNotFoundException,
)
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application import (
    TicketService,
    TicketCreateDTO,
    TicketUpdateDTO,
    TicketQueryDTO,
    TicketResponse,
    CreatedResponse,
    ChangesResponse,
    UserCreateDTO,
    UserResponse,
)
from helpdesk.tickets.domain import ReporterPolicy, StaffAccount
from helpdesk.tickets.infrastructure import (
    SQLAlchemyTicketRepository,
    SQLAlchemyUserRepository,
)

logger = get_logger(__name__)
tickets_router = APIRouter(prefix="/tickets", tags=["Tickets"])
users_router = APIRouter(prefix="/users", tags=["Users"])


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "issue": "Printer on 3rd floor not working",
    "description": "The shared printer shows a paper jam error since this morning.",
    "reportedBy": "jane.doe@may-baker.com",
    "department": "Finance",
    "branch": "Lagos",
    "staff": "it.admin@may-baker.com"
}


# ========== Dependencies ==========

async def get_ticket_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> TicketService:
    """Get ticket service instance bound to the request session."""
    rules_manager = getattr(request.app.state, "rules_manager", None)
    if rules_manager is not None:
        policy = rules_manager.rules.reporter_policy()
    else:
        policy = ReporterPolicy.from_domains(settings.allowed_reporter_domains)

    notifier = getattr(request.app.state, "notifier", None)
    return TicketService(SQLAlchemyTicketRepository(session), policy, notifier)


def _bad_request(e: ValidationException) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


# ========== Ticket Routes ==========

@tickets_router.post(
    "",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket",
    description="""
    Create a helpdesk ticket.

    `dateReported` and `timeReported` default to the current local time and
    `status` defaults to `open`. A `reportedBy` address outside the allowed
    domains is rejected with 400.
    """,
    responses={
        201: {
            "description": "Ticket created",
            "content": {"application/json": {"example": {"id": 42}}}
        },
        400: {"description": "Reporter domain not allowed"}
    },
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"example": TICKET_CREATE_EXAMPLE}}
        }
    }
)
async def create_ticket(
    payload: TicketCreateDTO,
    service: TicketService = Depends(get_ticket_service)
):
    try:
        ticket = await service.create(payload)
    except ValidationException as e:
        raise _bad_request(e)

    return CreatedResponse(id=ticket.id)


@tickets_router.get(
    "",
    response_model=List[TicketResponse],
    response_model_by_alias=True,
    summary="List tickets",
    description="List tickets ordered by id, optionally filtered by department, status and staff."
)
async def list_tickets(
    query: TicketQueryDTO = Depends(),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.list(query.filters())
    return [TicketResponse.from_domain(ticket) for ticket in tickets]


@tickets_router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    response_model_by_alias=True,
    summary="Get a ticket",
    responses={404: {"description": "Ticket not found"}}
)
async def get_ticket(
    ticket_id: int,
    service: TicketService = Depends(get_ticket_service)
):
    try:
        ticket = await service.require(ticket_id)
    except ResourceNotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return TicketResponse.from_domain(ticket)


@tickets_router.put(
    "/{ticket_id}",
    response_model=ChangesResponse,
    summary="Update a ticket",
    description="""
    Partially update a ticket. Only fields present in the body are written.

    Setting `status` to `resolved` fills `resolutionTime` and `dateClosed`
    when they are not given and notifies the assignee and the reporter.
    Moving a resolved ticket back to another status is rejected with 409.
    """,
    responses={
        404: {"description": "Ticket not found"},
        409: {"description": "A resolved ticket cannot be reopened"}
    }
)
async def update_ticket(
    ticket_id: int,
    payload: TicketUpdateDTO,
    service: TicketService = Depends(get_ticket_service)
):
    try:
        changed = await service.update(ticket_id, payload)
    except ValidationException as e:
        raise _bad_request(e)
    except DomainException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    if not changed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ticket {ticket_id} not found"
        )
    return ChangesResponse(changes=1)


@tickets_router.delete(
    "/{ticket_id}",
    response_model=ChangesResponse,
    summary="Delete a ticket",
    responses={404: {"description": "Ticket not found"}}
)
async def delete_ticket(
    ticket_id: int,
    service: TicketService = Depends(get_ticket_service)
):
    if not await service.delete(ticket_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ticket {ticket_id} not found"
        )
    return ChangesResponse(changes=1)


@tickets_router.delete(
    "",
    response_model=ChangesResponse,
    summary="Delete all tickets"
)
async def delete_all_tickets(
    service: TicketService = Depends(get_ticket_service)
):
    count = await service.delete_all()
    return ChangesResponse(changes=count)


# ========== User Routes ==========

@users_router.get(
    "",
    response_model=List[UserResponse],
    response_model_by_alias=True,
    summary="List the user roster"
)
async def list_users(
    session: AsyncSession = Depends(get_session)
):
    users = await SQLAlchemyUserRepository(session).list()
    return [UserResponse.from_domain(user) for user in users]


@users_router.post(
    "",
    response_model=UserResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Add a roster entry",
    responses={409: {"description": "A user with this email already exists"}}
)
async def create_user(
    request: Request,
    payload: UserCreateDTO,
    session: AsyncSession = Depends(get_session)
):
    account = StaffAccount(
        email=payload.email,
        role=payload.role,
        firstname=payload.firstname,
        lastname=payload.lastname,
        department=payload.department,
        branch=payload.branch,
    )
    try:
        created = await SQLAlchemyUserRepository(session).create(account)
    except DuplicateResourceException as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    directory = getattr(request.app.state, "user_directory", None)
    if directory is not None:
        directory.invalidate()

    logger.info("User added", extra={"email": created.email, "role": created.role})
    return UserResponse.from_domain(created)
