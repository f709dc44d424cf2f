"""Claim extraction agent: structured list of claims from one expert opinion."""

import json
import logging
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from casecite.agents.generation import TextGenerator
from casecite.agents.models import ChatMessage, ExtractedClaim, UsageContext
from casecite.core.errors import GenerationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior medical expert. Answer with structured JSON only, "
    "following the requested schema exactly."
)
DEFAULT_CATEGORY = "Unclassified"


# ── Raw Model Output ─────────────────────────────────────────────────


class RawClaim(BaseModel):
    """A claim as the model wrote it; everything is optional until normalized."""

    model_config = ConfigDict(populate_by_name=True)

    claim_title: Optional[str] = Field(default=None, alias="claimTitle")
    claim_summary: Optional[str] = Field(default=None, alias="claimSummary")
    category: Optional[str] = None
    confidence: Optional[float] = None
    source_excerpt: Optional[str] = Field(default=None, alias="sourceExcerpt")
    recommendation: Optional[str] = None
    tags: Optional[list[str]] = None

    @field_validator(
        "claim_title",
        "claim_summary",
        "category",
        "source_excerpt",
        "recommendation",
        mode="before",
    )
    @classmethod
    def text_or_none(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @field_validator("confidence", mode="before")
    @classmethod
    def number_or_none(cls, value: Any) -> Optional[float]:
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return None
        if isinstance(value, (int, float)) and math.isfinite(value):
            return value
        return None

    @field_validator("tags", mode="before")
    @classmethod
    def string_tags(cls, value: Any) -> Optional[list[str]]:
        if not isinstance(value, list):
            return None
        return [t for t in value if isinstance(t, str)]


class ClaimExtractionOutput(BaseModel):
    claims: list[RawClaim] = Field(default_factory=list)


# ── Normalization ────────────────────────────────────────────────────


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_claim(raw: RawClaim) -> ExtractedClaim | None:
    """Drop claims without a title or summary; clamp confidence to [0, 1]."""
    title = _clean(raw.claim_title)
    summary = _clean(raw.claim_summary)
    if not title or not summary:
        return None

    confidence = None
    if raw.confidence is not None:
        confidence = round(min(max(raw.confidence, 0.0), 1.0), 2)

    tags = [t.strip() for t in raw.tags or [] if t and t.strip()]

    return ExtractedClaim(
        claim_title=title,
        claim_summary=summary,
        category=_clean(raw.category) or DEFAULT_CATEGORY,
        confidence=confidence,
        source_excerpt=_clean(raw.source_excerpt),
        recommendation=_clean(raw.recommendation),
        tags=tags,
    )


def parse_claims(raw_json: str) -> list[ExtractedClaim]:
    """Parse the model's JSON answer into normalized claims.

    Only unparseable JSON is an error. Fields of the wrong type are cleared
    one by one, and a missing or null ``claims`` list yields no claims.
    """
    try:
        data = json.loads(raw_json)
    except json.JSONDecodeError as exc:
        raise GenerationError(
            "Claim extraction returned invalid JSON", details=str(exc)
        ) from exc

    items = data.get("claims") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []

    raw_claims = [
        RawClaim.model_validate(item) for item in items if isinstance(item, dict)
    ]
    claims = [c for c in (normalize_claim(raw) for raw in raw_claims) if c]
    if len(claims) < len(items):
        logger.info("Dropped %d incomplete claims", len(items) - len(claims))
    return claims


# ── Agent ────────────────────────────────────────────────────────────


def extract_claims(
    generator: TextGenerator,
    prompt: str,
    *,
    model: str | None = None,
    max_tokens: int = 1500,
    metadata: UsageContext | None = None,
) -> list[ExtractedClaim]:
    """Ask for claims with the output schema enforced, then normalize them."""
    result = generator.generate(
        [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ],
        model=model,
        temperature=0.1,
        max_tokens=max_tokens,
        response_format=ClaimExtractionOutput.model_json_schema(),
        metadata=metadata,
    )
    return parse_claims(result.text)
