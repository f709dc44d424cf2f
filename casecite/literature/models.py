"""Shared data models for citation detection and literature resolution."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

ProviderTag = Literal["semantic-scholar", "crossref", "openalex", "pubmed"]


class CitationCandidate(BaseModel):
    """A document line believed to reference an external publication."""

    id: str
    raw_text: str
    source_document_id: Optional[str] = None
    source_document_name: Optional[str] = None
    title_guess: Optional[str] = None
    journal_guess: Optional[str] = None
    year: Optional[int] = None


class ResolvedLiteratureItem(BaseModel):
    """A provider record matched to exactly one citation candidate."""

    id: str
    title: str
    abstract: Optional[str] = None
    journal: Optional[str] = None
    year: Optional[int] = None
    authors: Optional[list[str]] = None
    url: Optional[str] = None
    source: ProviderTag
    matched_citation: CitationCandidate


class LiteratureSearchResult(BaseModel):
    """Partition of the scoped candidates into resolved and unresolved."""

    resolved: list[ResolvedLiteratureItem] = Field(default_factory=list)
    unresolved: list[CitationCandidate] = Field(default_factory=list)
