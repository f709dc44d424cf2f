"""OpenAlex provider using the pyalex library."""

import logging
import uuid

import pyalex
from pyalex import Works, invert_abstract

from casecite.core.errors import ResolverProviderError
from casecite.literature.base import LiteratureProvider, doi_url, fallback_title
from casecite.literature.models import CitationCandidate, ResolvedLiteratureItem

logger = logging.getLogger(__name__)

_DOI_PREFIX = "https://doi.org/"


class OpenAlexProvider(LiteratureProvider):
    """Full-text search over OpenAlex works, first hit only."""

    def __init__(self, contact_email: str | None = None):
        if contact_email:
            pyalex.config.email = contact_email

    @property
    def name(self) -> str:
        return "openalex"

    def lookup(
        self, query: str, candidate: CitationCandidate
    ) -> ResolvedLiteratureItem | None:
        try:
            works = Works().search(query).get(per_page=1)
        except Exception as exc:
            raise ResolverProviderError(
                self.name, "OpenAlex request failed", details=str(exc)
            ) from exc

        if not works:
            return None
        return _parse_work(works[0], candidate)


# ── Abstract Reconstruction ──────────────────────────────────────────


def reconstruct_abstract(inverted_index: dict | None) -> str | None:
    """Reassemble full abstract text from an OpenAlex inverted index.

    OpenAlex stores abstracts as {word: [position, ...]} dicts.
    Returns None if the inverted index is empty or None.
    """
    if not inverted_index:
        return None
    return invert_abstract(inverted_index)


# ── Work → ResolvedLiteratureItem ────────────────────────────────────


def _parse_work(work: dict, candidate: CitationCandidate) -> ResolvedLiteratureItem:
    """Convert an OpenAlex Work dict into a ResolvedLiteratureItem."""
    # strip the DOI url prefix
    doi = work.get("doi")
    if doi and doi.startswith(_DOI_PREFIX):
        doi = doi[len(_DOI_PREFIX):]

    authors = []
    for authorship in work.get("authorships") or []:
        author = authorship.get("author") or {}
        name = author.get("display_name")
        if name:
            authors.append(name)

    primary = work.get("primary_location") or {}
    source = primary.get("source") or {}

    return ResolvedLiteratureItem(
        id=work.get("id") or doi or str(uuid.uuid4()),
        title=work.get("title") or fallback_title(candidate),
        abstract=reconstruct_abstract(work.get("abstract_inverted_index")),
        journal=source.get("display_name"),
        year=work.get("publication_year") or candidate.year,
        authors=authors or None,
        url=doi_url(doi) or work.get("id"),
        source="openalex",
        matched_citation=candidate,
    )
