"""AI usage log exports: CSV and Excel."""

import csv
import logging

import openpyxl
from openpyxl.styles import Font

from casecite.core.database import CaseDatabase

logger = logging.getLogger(__name__)

USAGE_HEADERS = [
    "id",
    "case_id",
    "username",
    "action",
    "status",
    "model",
    "duration_ms",
    "prompt_tokens",
    "completion_tokens",
    "total_tokens",
    "cost_usd",
    "error_message",
    "created_at",
]


def _build_usage_rows(db: CaseDatabase, case_id: str | None) -> list[list]:
    rows = []
    for entry in db.get_usage_logs(case_id=case_id):
        data = entry.model_dump()
        data["created_at"] = entry.created_at.isoformat() if entry.created_at else ""
        rows.append([data[h] if data[h] is not None else "" for h in USAGE_HEADERS])
    return rows


# ── CSV Export ───────────────────────────────────────────────────────


def export_usage_csv(
    db: CaseDatabase, output_path: str, case_id: str | None = None
) -> None:
    """Export the usage log, newest first, optionally for one case."""
    rows = _build_usage_rows(db, case_id)

    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(USAGE_HEADERS)
        writer.writerows(rows)

    logger.info("Usage CSV exported to %s (%d rows)", output_path, len(rows))


# ── Excel Export ─────────────────────────────────────────────────────


def export_usage_excel(
    db: CaseDatabase, output_path: str, case_id: str | None = None
) -> None:
    """Export the usage log plus a per-action summary sheet."""
    wb = openpyxl.Workbook()

    ws1 = wb.active
    ws1.title = "Usage Log"
    ws1.append(USAGE_HEADERS)
    for row in _build_usage_rows(db, case_id):
        ws1.append(row)
    _style_header(ws1)

    ws2 = wb.create_sheet("By Action")
    ws2.append(["action", "calls", "errors", "total_tokens", "cost_usd"])
    totals: dict[str, list] = {}
    for entry in db.get_usage_logs(case_id=case_id):
        row = totals.setdefault(entry.action, [entry.action, 0, 0, 0, 0.0])
        row[1] += 1
        row[2] += entry.status == "error"
        row[3] += entry.total_tokens or 0
        row[4] += entry.cost_usd or 0.0
    for row in sorted(totals.values()):
        ws2.append(row)
    _style_header(ws2)

    wb.save(output_path)
    logger.info("Usage Excel exported to %s", output_path)


def _style_header(ws) -> None:
    """Bold the header row."""
    for cell in ws[1]:
        cell.font = Font(bold=True)
