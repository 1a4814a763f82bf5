"""
Ingestion Interfaces Layer
==========================

HTTP API controllers for the ingestion loop.
"""

from helpdesk.ingestion.interfaces.controllers import router

__all__ = ["router"]
