"""Case, document, user and usage-log models."""

from datetime import datetime
from typing import ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from casecite.core.case_state import CaseState

ReportKind = Literal["initial", "comparison"]
AiAction = Literal[
    "initial-report", "comparison-report", "literature-review", "claim-extraction"
]


# ── Focus Flags ──────────────────────────────────────────────────────


class FocusFlags(BaseModel):
    """Closed set of analytical angles a report should emphasize.

    To add a flag: declare the field, give it a label in
    ``casecite.reports.prompts.FOCUS_FLAG_LABELS`` and bump ``VERSION``.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    VERSION: ClassVar[int] = 1

    negligence: bool = False
    causation: bool = False
    life_expectancy: bool = Field(default=False, alias="lifeExpectancy")

    def enabled(self) -> list[str]:
        """Field names of the flags that are switched on, in declaration order."""
        return [name for name in type(self).model_fields if getattr(self, name)]


# ── Users ────────────────────────────────────────────────────────────


class User(BaseModel):
    """The authenticated caller, supplied by the auth collaborator."""

    username: str
    role: Literal["admin", "user"] = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ── Cases & Documents ────────────────────────────────────────────────


class Case(BaseModel):
    id: str
    name: str
    owner: str
    created_at: datetime
    focus_options: FocusFlags = Field(default_factory=FocusFlags)
    focus_text: str = ""
    initial_report: Optional[str] = None
    comparison_report: Optional[str] = None
    state: CaseState = CaseState.IDLE

    def can_be_accessed_by(self, user: User) -> bool:
        return user.is_admin or self.owner == user.username

    def report(self, kind: ReportKind) -> Optional[str]:
        return self.initial_report if kind == "initial" else self.comparison_report


class CaseDocument(BaseModel):
    id: str
    case_id: str
    original_filename: str
    mime_type: str
    size_bytes: int = Field(ge=0)
    extracted_text: Optional[str] = None
    created_at: datetime


# ── Usage Log ────────────────────────────────────────────────────────


class UsageLogEntry(BaseModel):
    """One generation attempt. Frozen: entries are append-only."""

    model_config = ConfigDict(frozen=True)

    case_id: str
    username: str
    action: AiAction
    status: Literal["success", "error"]
    model: Optional[str] = None
    duration_ms: Optional[int] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    cost_usd: Optional[float] = None
    error_message: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
