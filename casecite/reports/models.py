"""Request and result models for report generation."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from casecite.agents.models import ExtractedClaim
from casecite.core.case_state import CaseState
from casecite.core.models import ReportKind


class ComparisonReportRequest(BaseModel):
    """Plaintiff opinion (A) against defense opinion (B).

    Each side is either a stored document id or raw pasted text.
    """

    model_config = ConfigDict(populate_by_name=True)

    report_a_id: Optional[str] = Field(default=None, alias="reportAId")
    report_b_id: Optional[str] = Field(default=None, alias="reportBId")
    report_a_text: Optional[str] = Field(default=None, alias="reportAText")
    report_b_text: Optional[str] = Field(default=None, alias="reportBText")


class LiteratureReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clinical_question: str = Field(alias="clinicalQuestion")


# ── Literature Review ────────────────────────────────────────────────


class LiteratureSource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    journal: Optional[str] = None
    year: Optional[int] = None
    url: Optional[str] = None
    summary: Optional[str] = None
    implication: Optional[str] = None


class LiteratureReviewResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str
    sources: list[LiteratureSource] = Field(default_factory=list)
    overall_summary: Optional[str] = Field(default=None, alias="overallSummary")
    search_suggestions: list[str] = Field(
        default_factory=list, alias="searchSuggestions"
    )

    @classmethod
    def from_model_output(cls, data: Any, question: str) -> "LiteratureReviewResult":
        """Keep whatever is usable from a loosely structured JSON answer.

        Sources without a title are dropped; a year that is not an integer is
        cleared; the question falls back to the one that was asked.
        """
        if not isinstance(data, dict):
            return cls(question=question)

        sources = []
        for raw in data.get("sources") or []:
            if not isinstance(raw, dict) or not str(raw.get("title") or "").strip():
                continue
            year = raw.get("year")
            sources.append(
                LiteratureSource(
                    title=str(raw["title"]).strip(),
                    journal=_text(raw.get("journal")),
                    year=year if isinstance(year, int) else None,
                    url=_text(raw.get("url")),
                    summary=_text(raw.get("summary")),
                    implication=_text(raw.get("implication")),
                )
            )

        suggestions = data.get("searchSuggestions") or []
        return cls(
            question=_text(data.get("question")) or question,
            sources=sources,
            overall_summary=_text(data.get("overallSummary")),
            search_suggestions=[
                s.strip() for s in suggestions if isinstance(s, str) and s.strip()
            ],
        )


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


# ── Outcomes ─────────────────────────────────────────────────────────


class ReportOutcome(BaseModel):
    """Result of a report operation; failures carry message and details."""

    ok: bool
    case_id: str
    kind: Optional[ReportKind] = None
    report: Optional[str] = None
    state: Optional[CaseState] = None
    message: Optional[str] = None
    details: Optional[str] = None
    literature: Optional[LiteratureReviewResult] = None
    claims: Optional[list[ExtractedClaim]] = None
