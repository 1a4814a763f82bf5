"""
Shared Kernel Module
====================

This module contains shared infrastructure used across both bounded
contexts (Tickets and Ingestion).

Architecture Pattern: Modular Monolith
- Each module (tickets, ingestion) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add ticket lifecycle or mail classification logic to the shared kernel.
"""

__version__ = "1.0.0"
