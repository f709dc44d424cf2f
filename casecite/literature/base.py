"""Base class for bibliographic providers in the resolver chain."""

import logging
from abc import ABC, abstractmethod

import requests

from casecite.core.errors import ResolverProviderError
from casecite.literature.models import CitationCandidate, ResolvedLiteratureItem

logger = logging.getLogger(__name__)

USER_AGENT = "casecite/0.1 (literature resolver)"


class LiteratureProvider(ABC):
    """One strategy in the ordered fallback chain.

    ``lookup`` returns the best single match for a query, or None when the
    provider has nothing. Transport or HTTP failures raise
    ``ResolverProviderError``; the resolver contains them.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider tag recorded on resolved items."""

    @abstractmethod
    def lookup(
        self, query: str, candidate: CitationCandidate
    ) -> ResolvedLiteratureItem | None:
        """Query the provider once and map its best match, if any."""


class HttpLiteratureProvider(LiteratureProvider):
    """Provider backed by a JSON HTTP API through a ``requests.Session``."""

    def __init__(
        self,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": USER_AGENT, "Accept": "application/json"}
        )

    def _get_json(self, url: str, params: dict, headers: dict | None = None) -> dict:
        """GET once; non-2xx and transport errors become ResolverProviderError."""
        try:
            response = self.session.get(
                url, params=params, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise ResolverProviderError(
                self.name, f"{self.name} request failed", details=str(exc)
            ) from exc

        if not response.ok:
            raise ResolverProviderError(
                self.name, f"{self.name} API error: {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ResolverProviderError(
                self.name, f"{self.name} returned invalid JSON", details=str(exc)
            ) from exc


# ── Mapping Helpers ──────────────────────────────────────────────────


def fallback_title(candidate: CitationCandidate) -> str:
    """Title used when a matched record has none."""
    return candidate.title_guess or candidate.raw_text


def doi_url(doi: str | None) -> str | None:
    return f"https://doi.org/{doi}" if doi else None
