"""
Tickets Module
==============

Bounded Context for the helpdesk ticket store and its lifecycle.

Responsibilities:
- Persist tickets and the staff/user roster
- Validate reporters against the allow-listed domains
- Enforce the open -> resolved lifecycle
- Pick an assignee for new tickets (pluggable assignment policy)
- Notify assignees and reporters on assignment and resolution

Endpoints:
- POST/GET/PUT/DELETE /api/tickets
- GET/POST /api/users
"""

__version__ = "1.0.0"
