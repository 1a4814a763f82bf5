"""
Ingestion Application DTOs
==========================

Response models for the manual ingestion trigger and the CLI script.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from helpdesk.ingestion.application.services import CycleSummary, MessageOutcome


class MessageOutcomeResponse(BaseModel):
    """Outcome of one message."""
    sequence_number: str
    status: str = Field(..., description="ignored, created, resolved, not_found or failed")
    disposition: Optional[str] = None
    sender: Optional[str] = None
    ticket_id: Optional[int] = None
    staff: Optional[str] = None
    reason: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    acknowledged: bool

    @classmethod
    def from_outcome(cls, outcome: MessageOutcome) -> "MessageOutcomeResponse":
        return cls(
            sequence_number=outcome.sequence_number,
            status=outcome.status,
            disposition=outcome.disposition,
            sender=outcome.sender,
            ticket_id=outcome.ticket_id,
            staff=outcome.staff,
            reason=outcome.reason,
            failed_stage=outcome.failed_stage,
            error=outcome.error,
            acknowledged=outcome.acknowledged,
        )


class CycleSummaryResponse(BaseModel):
    """Summary of one ingestion cycle."""
    cycle_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    skip_reason: Optional[str] = None
    error: Optional[str] = None
    fetched: int = 0
    counts: Dict[str, int] = Field(default_factory=dict)
    outcomes: List[MessageOutcomeResponse] = Field(default_factory=list)

    @classmethod
    def from_summary(cls, summary: CycleSummary) -> "CycleSummaryResponse":
        return cls(
            cycle_id=summary.cycle_id,
            started_at=summary.started_at,
            finished_at=summary.finished_at,
            skipped=summary.skipped,
            skip_reason=summary.skip_reason,
            error=summary.error,
            fetched=summary.fetched,
            counts=summary.counts,
            outcomes=[MessageOutcomeResponse.from_outcome(o) for o in summary.outcomes],
        )
