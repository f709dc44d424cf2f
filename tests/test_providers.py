"""Tests for the bibliographic providers (HTTP, pyalex and Entrez mocked)."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from casecite.core.errors import ResolverProviderError
from casecite.literature.crossref import WORKS_URL, CrossrefProvider, strip_jats
from casecite.literature.models import CitationCandidate
from casecite.literature.openalex import OpenAlexProvider, reconstruct_abstract
from casecite.literature.pubmed import PubMedProvider
from casecite.literature.semantic_scholar import SEARCH_URL, SemanticScholarProvider


@pytest.fixture()
def candidate():
    return CitationCandidate(
        id="doc-0-x",
        raw_text="Smith J. (2019). Outcomes in delayed diagnosis. Journal of Surgery 45:112.",
        title_guess="Outcomes in delayed diagnosis",
        journal_guess="Journal of Surgery",
        year=2019,
    )


def _session(payload=None, status=200, exc=None):
    session = MagicMock()
    if exc is not None:
        session.get.side_effect = exc
        return session
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.json.return_value = payload
    session.get.return_value = response
    return session


# ── Semantic Scholar ─────────────────────────────────────────────────


def test_semantic_scholar_maps_paper(candidate):
    session = _session(
        {
            "data": [
                {
                    "paperId": "abc123",
                    "title": "Outcomes in delayed diagnosis",
                    "abstract": "We studied delays.",
                    "year": 2019,
                    "venue": "",
                    "publicationVenue": {"name": "Journal of Surgery"},
                    "authors": [{"name": "J. Smith"}, {"name": None}],
                    "externalIds": {"DOI": "10.1/xyz"},
                }
            ]
        }
    )
    provider = SemanticScholarProvider(session=session)
    item = provider.lookup("Outcomes in delayed diagnosis", candidate)

    assert item.id == "abc123"
    assert item.journal == "Journal of Surgery"
    assert item.authors == ["J. Smith"]
    assert item.url == "https://doi.org/10.1/xyz"
    assert item.source == "semantic-scholar"
    assert item.matched_citation.id == candidate.id

    args, kwargs = session.get.call_args
    assert args[0] == SEARCH_URL
    assert kwargs["params"]["limit"] == 1
    assert kwargs["headers"] is None


def test_semantic_scholar_sends_api_key(candidate):
    session = _session({"data": []})
    provider = SemanticScholarProvider(api_key="secret", session=session)
    assert provider.lookup("q", candidate) is None
    assert session.get.call_args.kwargs["headers"] == {"x-api-key": "secret"}


def test_semantic_scholar_falls_back_to_candidate(candidate):
    session = _session({"data": [{"paperId": None, "title": None}]})
    item = SemanticScholarProvider(session=session).lookup("q", candidate)
    assert item.title == candidate.title_guess
    assert item.year == 2019
    assert item.id


def test_http_error_raises_provider_error(candidate):
    provider = SemanticScholarProvider(session=_session(status=429))
    with pytest.raises(ResolverProviderError) as exc_info:
        provider.lookup("q", candidate)
    assert exc_info.value.provider == "semantic-scholar"
    assert "429" in exc_info.value.message


def test_transport_error_raises_provider_error(candidate):
    session = _session(exc=requests.ConnectionError("refused"))
    with pytest.raises(ResolverProviderError):
        CrossrefProvider(session=session).lookup("q", candidate)


def test_timeout_passed_to_session(candidate):
    session = _session({"data": []})
    SemanticScholarProvider(timeout=3.0, session=session).lookup("q", candidate)
    assert session.get.call_args.kwargs["timeout"] == 3.0


# ── Crossref ─────────────────────────────────────────────────────────


def test_crossref_maps_item(candidate):
    session = _session(
        {
            "message": {
                "items": [
                    {
                        "DOI": "10.2/abc",
                        "title": ["Delayed diagnosis in surgery"],
                        "author": [
                            {"given": "Jane", "family": "Smith"},
                            {"family": "Levi"},
                        ],
                        "issued": {"date-parts": [[2020, 5]]},
                        "container-title": [],
                        "abstract": "<jats:p>Background text.</jats:p>",
                        "URL": "http://dx.doi.org/10.2/abc",
                    }
                ]
            }
        }
    )
    item = CrossrefProvider(session=session).lookup("q", candidate)

    assert item.id == "10.2/abc"
    assert item.title == "Delayed diagnosis in surgery"
    assert item.authors == ["Jane Smith", "Levi"]
    assert item.year == 2020
    assert item.journal == "Journal of Surgery"
    assert item.abstract == "Background text."
    assert item.source == "crossref"

    args, kwargs = session.get.call_args
    assert args[0] == WORKS_URL
    assert kwargs["params"]["rows"] == 1
    assert kwargs["params"]["query.bibliographic"] == "q"


def test_crossref_no_items(candidate):
    assert CrossrefProvider(session=_session({"message": {"items": []}})).lookup(
        "q", candidate
    ) is None


def test_strip_jats():
    assert strip_jats("<jats:title>A</jats:title> b") == "A b"
    assert strip_jats(None) is None
    assert strip_jats("<jats:p></jats:p>") is None


# ── OpenAlex ─────────────────────────────────────────────────────────


def test_reconstruct_abstract():
    assert reconstruct_abstract({"Hello": [0], "world": [1]}) == "Hello world"
    assert reconstruct_abstract(None) is None
    assert reconstruct_abstract({}) is None


def test_openalex_maps_work(candidate):
    work = {
        "id": "https://openalex.org/W1",
        "doi": "https://doi.org/10.3/w1",
        "title": "OpenAlex title",
        "publication_year": 2018,
        "authorships": [{"author": {"display_name": "A. Author"}}],
        "primary_location": {"source": {"display_name": "Annals of Surgery"}},
        "abstract_inverted_index": {"Short": [0], "abstract": [1]},
    }
    with patch("casecite.literature.openalex.Works") as works:
        works.return_value.search.return_value.get.return_value = [work]
        item = OpenAlexProvider().lookup("q", candidate)

    works.return_value.search.assert_called_once_with("q")
    assert item.url == "https://doi.org/10.3/w1"
    assert item.journal == "Annals of Surgery"
    assert item.abstract == "Short abstract"
    assert item.authors == ["A. Author"]
    assert item.source == "openalex"


def test_openalex_failure_wrapped(candidate):
    with patch("casecite.literature.openalex.Works") as works:
        works.return_value.search.side_effect = RuntimeError("rate limited")
        with pytest.raises(ResolverProviderError):
            OpenAlexProvider().lookup("q", candidate)


# ── PubMed ───────────────────────────────────────────────────────────


def test_pubmed_maps_record(candidate):
    record = {
        "PMID": "31234567",
        "TI": "PubMed title",
        "AB": "Abstract text",
        "JT": "Journal of Surgical Research",
        "DP": "2021 Mar",
        "AU": ["Smith J", "Levi R"],
        "AID": ["S0022 [pii]", "10.4/pm [doi]"],
    }
    with patch("casecite.literature.pubmed._esearch_first", return_value="31234567"), patch(
        "casecite.literature.pubmed._efetch", return_value=record
    ):
        item = PubMedProvider().lookup("q", candidate)

    assert item.id == "31234567"
    assert item.year == 2021
    assert item.url == "https://pubmed.ncbi.nlm.nih.gov/31234567/"
    assert item.authors == ["Smith J", "Levi R"]
    assert item.source == "pubmed"


def test_pubmed_no_hits(candidate):
    with patch("casecite.literature.pubmed._esearch_first", return_value=None):
        assert PubMedProvider().lookup("q", candidate) is None


def test_pubmed_entrez_failure_wrapped(candidate):
    with patch("casecite.literature.pubmed.Entrez") as entrez:
        entrez.esearch.side_effect = OSError("network down")
        with pytest.raises(ResolverProviderError):
            PubMedProvider().lookup("q", candidate)
