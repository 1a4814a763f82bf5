"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from helpdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    TicketLifecycleException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    DuplicateResourceException,
    ConfigurationException,
    ExternalServiceException,
    MailboxException,
    TicketStoreException,
    NotificationException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "TicketLifecycleException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "DuplicateResourceException",
    "ConfigurationException",
    "ExternalServiceException",
    "MailboxException",
    "TicketStoreException",
    "NotificationException",
]
