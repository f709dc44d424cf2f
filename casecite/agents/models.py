"""Shared data models for generation calls and the claim extraction agent."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from casecite.core.models import AiAction


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class TokenUsage(BaseModel):
    """Token counts reported by the provider; any of them may be missing."""

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class GenerationResult(BaseModel):
    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str
    duration_ms: int


class UsageContext(BaseModel):
    """Who asked for a generation call, and for what; drives the usage log."""

    case_id: str
    username: str
    action: AiAction


# ── Claim Extraction ─────────────────────────────────────────────────


class ExtractedClaim(BaseModel):
    """A medical claim made by the expert in a single document."""

    claim_title: str
    claim_summary: str
    category: str = "Unclassified"
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    source_excerpt: Optional[str] = None
    recommendation: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
