"""Resolve citation candidates against an ordered chain of providers."""

import logging

from casecite.core.settings import LiteratureSettings
from casecite.literature.base import LiteratureProvider
from casecite.literature.crossref import CrossrefProvider
from casecite.literature.models import (
    CitationCandidate,
    LiteratureSearchResult,
    ResolvedLiteratureItem,
)
from casecite.literature.openalex import OpenAlexProvider
from casecite.literature.pubmed import PubMedProvider
from casecite.literature.semantic_scholar import SemanticScholarProvider

logger = logging.getLogger(__name__)

DEFAULT_RESOLVE_LIMIT = 8
_RAW_QUERY_MAX_CHARS = 240


# ── Provider Chain ───────────────────────────────────────────────────


def build_provider_chain(
    settings: LiteratureSettings,
    semantic_scholar_api_key: str | None = None,
) -> list[LiteratureProvider]:
    """Instantiate the configured providers in fallback order.

    A per-call Semantic Scholar key takes precedence over the configured one.
    ``timeout_seconds`` reaches the HTTP providers only; pyalex and Entrez
    expose no per-call timeout.
    """
    chain: list[LiteratureProvider] = []
    for name in settings.providers:
        if name == "semantic-scholar":
            chain.append(
                SemanticScholarProvider(
                    api_key=semantic_scholar_api_key or settings.semantic_scholar_api_key,
                    timeout=settings.timeout_seconds,
                )
            )
        elif name == "crossref":
            chain.append(CrossrefProvider(timeout=settings.timeout_seconds))
        elif name == "openalex":
            chain.append(OpenAlexProvider(contact_email=settings.contact_email))
        elif name == "pubmed":
            chain.append(PubMedProvider(contact_email=settings.contact_email))
    return chain


# ── Query Builder ────────────────────────────────────────────────────


def build_query(candidate: CitationCandidate) -> str:
    """Title guess; else journal + year; else the raw line, truncated."""
    if candidate.title_guess:
        return candidate.title_guess
    if candidate.journal_guess and candidate.year:
        return f"{candidate.journal_guess} {candidate.year}"
    return candidate.raw_text[:_RAW_QUERY_MAX_CHARS]


# ── Public API ───────────────────────────────────────────────────────


def resolve_literature_references(
    candidates: list[CitationCandidate],
    providers: list[LiteratureProvider],
    limit: int = DEFAULT_RESOLVE_LIMIT,
) -> LiteratureSearchResult:
    """Resolve candidates one at a time, first provider match wins.

    Each provider is tried at most once per candidate. Provider failures are
    logged and only demote the candidate to ``unresolved``.
    """
    if not candidates:
        return LiteratureSearchResult()

    scoped = candidates[:limit]
    resolved: list[ResolvedLiteratureItem] = []
    handled: set[str] = set()

    for candidate in scoped:
        query = build_query(candidate)
        item = _first_match(query, candidate, providers)
        if item is not None:
            resolved.append(item)
            handled.add(candidate.id)

    unresolved = [c for c in scoped if c.id not in handled]

    logger.info(
        "Literature resolution: %d/%d resolved, %d unresolved",
        len(resolved),
        len(scoped),
        len(unresolved),
    )
    return LiteratureSearchResult(resolved=resolved, unresolved=unresolved)


def _first_match(
    query: str,
    candidate: CitationCandidate,
    providers: list[LiteratureProvider],
) -> ResolvedLiteratureItem | None:
    for provider in providers:
        try:
            item = provider.lookup(query, candidate)
        except Exception as exc:
            logger.warning(
                "%s lookup failed for candidate %s: %s",
                provider.name,
                candidate.id,
                exc,
            )
            continue
        if item is not None:
            return item
    return None
