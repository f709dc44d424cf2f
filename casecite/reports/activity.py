"""Per-case activity timeline built from the case, its documents and usage log."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from casecite.core.database import CaseDatabase
from casecite.core.errors import AccessDenied, NotFound
from casecite.core.models import UsageLogEntry, User

MAX_EVENTS = 250

ACTION_LABELS = {
    "initial-report": "Initial report",
    "comparison-report": "Comparison report",
    "literature-review": "Literature review",
    "claim-extraction": "Claim extraction",
}


class ActivityEvent(BaseModel):
    id: str
    type: Literal["case-created", "document-uploaded", "ai-usage"]
    title: str
    description: Optional[str] = None
    timestamp: datetime
    status: Optional[Literal["success", "error"]] = None


def build_case_activity(
    db: CaseDatabase, case_id: str, user: User
) -> list[ActivityEvent]:
    """Newest-first timeline for one case, capped at ``MAX_EVENTS``."""
    case = db.get_case(case_id)
    if case is None:
        raise NotFound("Case not found")
    if not case.can_be_accessed_by(user):
        raise AccessDenied("Access denied")

    events = [
        ActivityEvent(
            id=f"case-{case.id}",
            type="case-created",
            title="Case created",
            description=f"Owner: {case.owner}",
            timestamp=case.created_at,
        )
    ]

    for doc in db.get_case_documents(case_id):
        events.append(
            ActivityEvent(
                id=f"doc-{doc.id}",
                type="document-uploaded",
                title="Document uploaded",
                description=doc.original_filename,
                timestamp=doc.created_at,
            )
        )

    for entry in db.get_usage_logs(case_id=case_id):
        events.append(_usage_event(entry))

    events.sort(key=lambda e: e.timestamp, reverse=True)
    return events[:MAX_EVENTS]


def _usage_event(entry: UsageLogEntry) -> ActivityEvent:
    label = ACTION_LABELS.get(entry.action, entry.action)
    outcome = "completed" if entry.status == "success" else "error"

    details = [
        f"Model: {entry.model}" if entry.model else None,
        f"Duration: {entry.duration_ms / 1000:.1f}s" if entry.duration_ms else None,
        f"Cost: ${entry.cost_usd:.4f}" if entry.cost_usd is not None else None,
        f"Error: {entry.error_message}" if entry.error_message else None,
    ]
    return ActivityEvent(
        id=f"usage-{entry.id}",
        type="ai-usage",
        title=f"{label} ({outcome})",
        description=" · ".join(d for d in details if d) or None,
        timestamp=entry.created_at,
        status=entry.status,
    )
