"""Settings: YAML parser and Pydantic models, loaded once at startup."""

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

ProviderName = Literal["semantic-scholar", "crossref", "openalex", "pubmed"]


# ── Storage ──────────────────────────────────────────────────────────


class DatabaseSettings(BaseModel):
    """Location of the SQLite case store."""

    path: Path = Path("data/casecite.db")


# ── Text Generation ──────────────────────────────────────────────────


class GenerationSettings(BaseModel):
    """Ollama host and per-report generation parameters."""

    host: Optional[str] = None
    default_model: str = "qwen3:8b"
    report_model: str = "qwen3:32b"
    report_temperature: float = Field(default=0.25, ge=0.0)
    default_temperature: float = Field(default=0.2, ge=0.0)
    initial_report_max_tokens: int = Field(default=2400, gt=0)
    comparison_report_max_tokens: int = Field(default=2000, gt=0)
    literature_review_max_tokens: int = Field(default=1400, gt=0)
    claim_extraction_max_tokens: int = Field(default=1500, gt=0)


class PricingSettings(BaseModel):
    """Per-1000-token rates used to estimate the cost of a generation call."""

    input_cost_per_1k: float = Field(default=0.15, ge=0.0)
    output_cost_per_1k: float = Field(default=0.60, ge=0.0)


# ── Literature ───────────────────────────────────────────────────────


class LiteratureSettings(BaseModel):
    """Citation detection caps and the ordered provider chain."""

    providers: list[ProviderName] = Field(
        default_factory=lambda: ["semantic-scholar", "crossref"],
        description="Providers queried in order; the first match wins",
    )
    detection_limit: int = Field(default=6, gt=0)
    resolve_limit: int = Field(default=8, gt=0)
    max_references_per_document: int = Field(default=4, gt=0)
    max_references_per_report: int = Field(default=10, gt=0)
    semantic_scholar_api_key: Optional[str] = None
    contact_email: Optional[str] = None
    timeout_seconds: Optional[float] = Field(
        default=None,
        description=(
            "Per-request timeout for the HTTP providers (semantic-scholar, crossref); "
            "openalex and pubmed keep their client library defaults. "
            "None keeps the transport default"
        ),
    )

    @field_validator("providers")
    @classmethod
    def at_least_one_provider(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one literature provider must be configured")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate providers in chain: {v}")
        return v


# ── Reports ──────────────────────────────────────────────────────────


class ReportSettings(BaseModel):
    """Prompt budgets and presentation knobs."""

    prompt_document_char_limit: int = Field(default=6000, gt=0)
    depth: Literal["deep", "concise"] = "deep"
    language: str = "Hebrew"

    @field_validator("depth", mode="before")
    @classmethod
    def lowercase_depth(cls, v):
        return v.lower() if isinstance(v, str) else v


# ── Settings (top-level) ─────────────────────────────────────────────


class Settings(BaseModel):
    """Top-level configuration passed by reference into every component."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    literature: LiteratureSettings = Field(default_factory=LiteratureSettings)
    reports: ReportSettings = Field(default_factory=ReportSettings)


# ── Loader ───────────────────────────────────────────────────────────

# Environment variables consulted once, at load time.
_ENV_OVERRIDES = {
    "SEMANTIC_SCHOLAR_API_KEY": ("literature", "semantic_scholar_api_key"),
    "CASECITE_CONTACT_EMAIL": ("literature", "contact_email"),
    "OLLAMA_HOST": ("generation", "host"),
}


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from an optional YAML file plus environment overrides."""
    raw: dict = {}
    if path is not None:
        with open(Path(path)) as f:
            raw = yaml.safe_load(f) or {}

    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            raw.setdefault(section, {})[key] = value

    return Settings.model_validate(raw)
