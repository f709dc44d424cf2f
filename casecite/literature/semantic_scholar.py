"""Semantic Scholar Graph API provider: rich metadata and abstracts."""

import logging
import uuid

import requests

from casecite.literature.base import HttpLiteratureProvider, doi_url, fallback_title
from casecite.literature.models import CitationCandidate, ResolvedLiteratureItem

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
_FIELDS = "title,abstract,year,venue,publicationVenue,authors,url,externalIds"


class SemanticScholarProvider(HttpLiteratureProvider):
    """Best-match paper search; an API key raises the rate limit."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        super().__init__(timeout=timeout, session=session)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return "semantic-scholar"

    def lookup(
        self, query: str, candidate: CitationCandidate
    ) -> ResolvedLiteratureItem | None:
        headers = {"x-api-key": self.api_key} if self.api_key else None
        data = self._get_json(
            SEARCH_URL,
            params={"query": query, "limit": 1, "fields": _FIELDS},
            headers=headers,
        )

        papers = data.get("data") or []
        if not papers:
            return None
        return _parse_paper(papers[0], candidate)


# ── Paper → ResolvedLiteratureItem ───────────────────────────────────


def _parse_paper(paper: dict, candidate: CitationCandidate) -> ResolvedLiteratureItem:
    """Convert a Semantic Scholar paper dict into a ResolvedLiteratureItem."""
    doi = (paper.get("externalIds") or {}).get("DOI")

    authors = None
    if isinstance(paper.get("authors"), list):
        authors = [a["name"] for a in paper["authors"] if a.get("name")]

    venue = paper.get("venue") or (paper.get("publicationVenue") or {}).get("name")

    return ResolvedLiteratureItem(
        id=paper.get("paperId") or doi or str(uuid.uuid4()),
        title=paper.get("title") or fallback_title(candidate),
        abstract=paper.get("abstract"),
        journal=venue or None,
        year=paper.get("year") or candidate.year,
        authors=authors,
        url=paper.get("url") or doi_url(doi),
        source="semantic-scholar",
        matched_citation=candidate,
    )
