"""Crossref works API provider, DOI-oriented."""

import logging
import re
import uuid

from casecite.literature.base import HttpLiteratureProvider, doi_url, fallback_title
from casecite.literature.models import CitationCandidate, ResolvedLiteratureItem

logger = logging.getLogger(__name__)

WORKS_URL = "https://api.crossref.org/works"
_SELECT = "DOI,title,author,issued,container-title,abstract,URL"

_JATS_TAG_RE = re.compile(r"</?jats:[^>]+>")


class CrossrefProvider(HttpLiteratureProvider):
    """Bibliographic query against Crossref, one row."""

    @property
    def name(self) -> str:
        return "crossref"

    def lookup(
        self, query: str, candidate: CitationCandidate
    ) -> ResolvedLiteratureItem | None:
        data = self._get_json(
            WORKS_URL,
            params={"rows": 1, "select": _SELECT, "query.bibliographic": query},
        )

        items = (data.get("message") or {}).get("items") or []
        if not items:
            return None
        return _parse_item(items[0], candidate)


# ── Work → ResolvedLiteratureItem ────────────────────────────────────


def strip_jats(abstract: str | None) -> str | None:
    """Remove JATS XML tags Crossref embeds in abstracts."""
    if not isinstance(abstract, str):
        return None
    return _JATS_TAG_RE.sub("", abstract).strip() or None


def _parse_item(item: dict, candidate: CitationCandidate) -> ResolvedLiteratureItem:
    """Convert a Crossref work dict into a ResolvedLiteratureItem."""
    doi = item.get("DOI")

    authors = None
    if isinstance(item.get("author"), list):
        authors = []
        for author in item["author"]:
            name = " ".join(p for p in (author.get("given"), author.get("family")) if p)
            if name.strip():
                authors.append(name.strip())

    titles = item.get("title") or []
    containers = item.get("container-title") or []

    # issued.date-parts is [[year, month, day]] with trailing parts optional
    year = None
    date_parts = (item.get("issued") or {}).get("date-parts") or []
    if date_parts and date_parts[0]:
        year = date_parts[0][0]

    return ResolvedLiteratureItem(
        id=doi or str(uuid.uuid4()),
        title=titles[0] if titles else fallback_title(candidate),
        abstract=strip_jats(item.get("abstract")),
        journal=(containers[0] if containers else None) or candidate.journal_guess,
        year=year or candidate.year,
        authors=authors,
        url=item.get("URL") or doi_url(doi),
        source="crossref",
        matched_citation=candidate,
    )
