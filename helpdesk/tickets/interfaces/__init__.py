"""
Tickets Interfaces Layer
========================

HTTP API controllers for the ticket store and the user roster.
"""

from helpdesk.tickets.interfaces.controllers import tickets_router, users_router

__all__ = ["tickets_router", "users_router"]
