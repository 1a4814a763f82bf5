"""
Email Ingestion Module
======================

Polls the helpdesk mailbox and turns each unread message into a new ticket,
a resolution of an existing ticket, or nothing.

Layers follow the same split as the tickets module: domain (messages,
rules, classifier), application (the ingestion cycle), infrastructure
(IMAP, ticket gateways, rules file, scheduler) and interfaces (manual
trigger endpoint).
"""

__version__ = "1.0.0"
