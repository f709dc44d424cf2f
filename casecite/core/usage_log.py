"""Usage/audit logging for generation attempts: cost estimate and summaries."""

import logging
from datetime import datetime, timedelta, timezone

from casecite.core.database import CaseDatabase
from casecite.core.models import UsageLogEntry
from casecite.core.settings import PricingSettings

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30
_RECENT_LIMIT = 40


# ── Cost Estimate ────────────────────────────────────────────────────


def estimate_cost_usd(
    prompt_tokens: int | None,
    completion_tokens: int | None,
    pricing: PricingSettings,
) -> float | None:
    """Cost from per-1000-token rates; None when no token counts are known."""
    if prompt_tokens is None and completion_tokens is None:
        return None
    prompt_cost = (prompt_tokens or 0) / 1000 * pricing.input_cost_per_1k
    completion_cost = (completion_tokens or 0) / 1000 * pricing.output_cost_per_1k
    return round(prompt_cost + completion_cost, 6)


# ── Logger ───────────────────────────────────────────────────────────


class UsageLogger:
    """Writes one append-only entry per generation attempt.

    A failure to persist the entry is logged and swallowed so it can never
    fail the report request that produced it.
    """

    def __init__(self, db: CaseDatabase):
        self.db = db

    def log_ai_event(self, entry: UsageLogEntry) -> str | None:
        """Emit a log line and persist the entry. Returns the entry id or None."""
        logger.info(format_event(entry))
        try:
            return self.db.add_usage_log(entry)
        except Exception as exc:
            logger.error("Failed to persist AI usage log: %s", exc)
            return None


def format_event(entry: UsageLogEntry) -> str:
    """One-line summary: ``[AI][action] case=… user=… status=… t=…ms …``."""
    base = (
        f"[AI][{entry.action}] case={entry.case_id} "
        f"user={entry.username} status={entry.status}"
    )
    details = [
        f"t={entry.duration_ms}ms" if entry.duration_ms else None,
        f"prompt={entry.prompt_tokens}" if entry.prompt_tokens else None,
        f"completion={entry.completion_tokens}" if entry.completion_tokens else None,
        f"cost=${entry.cost_usd:.4f}" if entry.cost_usd else None,
        f'error="{entry.error_message}"' if entry.error_message else None,
    ]
    detail_text = " ".join(d for d in details if d)
    return f"{base} {detail_text}" if detail_text else base


# ── Summaries ────────────────────────────────────────────────────────


def sanitize_range_days(value) -> int:
    """Parse a day range, default 30, clamped to [1, 365]."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return DEFAULT_RANGE_DAYS
    return min(max(parsed, 1), 365)


def usage_summary(db: CaseDatabase, range_days=DEFAULT_RANGE_DAYS) -> dict:
    """Totals, per-action breakdown and recent events within the range."""
    days = sanitize_range_days(range_days)
    since = datetime.now(timezone.utc) - timedelta(days=days)

    totals = db.get_usage_totals(since)
    by_action = db.get_usage_by_action(since)
    recent = db.get_usage_logs(since=since, limit=_RECENT_LIMIT)

    return {
        "range_days": days,
        "summary": {
            "total_calls": int(totals["total_calls"] or 0),
            "total_tokens": int(totals["total_tokens"] or 0),
            "total_cost_usd": float(totals["total_cost_usd"] or 0),
            "avg_duration_ms": float(totals["avg_duration_ms"] or 0),
        },
        "by_action": [
            {
                "action": row["action"],
                "total_calls": int(row["total_calls"]),
                "total_prompt_tokens": int(row["total_prompt_tokens"]),
                "total_completion_tokens": int(row["total_completion_tokens"]),
                "total_tokens": int(row["total_tokens"]),
                "total_cost_usd": float(row["total_cost_usd"]),
                "avg_duration_ms": float(row["avg_duration_ms"]),
            }
            for row in by_action
        ],
        "recent": [
            {
                "id": e.id,
                "case_id": e.case_id,
                "username": e.username,
                "action": e.action,
                "status": e.status,
                "duration_ms": e.duration_ms,
                "cost_usd": e.cost_usd,
                "created_at": e.created_at,
            }
            for e in recent
        ],
    }
