"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries (HTTP controllers and the
ingestion loop).
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class TicketLifecycleException(DomainException):
    """Raised when an update would break the open -> resolved lifecycle."""

    def __init__(self, ticket_id: int, current: str, requested: str):
        self.ticket_id = ticket_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Ticket {ticket_id} cannot move from '{current}' to '{requested}'",
            {"ticket_id": ticket_id, "current": current, "requested": requested}
        )


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class DuplicateResourceException(ApplicationException):
    """Exception when a resource with the same natural key already exists."""

    def __init__(self, resource_type: str, key: str):
        self.resource_type = resource_type
        self.key = key
        super().__init__(f"{resource_type} '{key}' already exists", {"key": key})


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class MailboxException(ExternalServiceException):
    """Exception for IMAP mailbox failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Mailbox", message, details)


class TicketStoreException(ExternalServiceException):
    """Exception for ticket API failures seen by the ingestion loop."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Ticket Store", message, details)


class NotificationException(ExternalServiceException):
    """Exception for outbound mail failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification", message, details)
