"""
Ingestion Domain Layer
======================

Contains:
- Entities: RawMessage, InboundMessage, Disposition
- Value Objects & Services: IngestionRules, MessageClassifier, parse_message

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.ingestion.domain.entities import (
    RawMessage,
    InboundMessage,
    Disposition,
    DispositionKind,
    IgnoreReason,
)
from helpdesk.ingestion.domain.value_objects import IngestionRules, MessageClassifier
from helpdesk.ingestion.domain.parsing import parse_message, html_to_text

__all__ = [
    # Entities
    "RawMessage",
    "InboundMessage",
    "Disposition",
    "DispositionKind",
    "IgnoreReason",
    # Value Objects & Services
    "IngestionRules",
    "MessageClassifier",
    "parse_message",
    "html_to_text",
]
