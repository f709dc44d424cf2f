"""PubMed provider using Biopython's Entrez module."""

import logging

from Bio import Entrez, Medline

from casecite.core.errors import ResolverProviderError
from casecite.literature.base import LiteratureProvider, doi_url, fallback_title
from casecite.literature.models import CitationCandidate, ResolvedLiteratureItem

logger = logging.getLogger(__name__)

PUBMED_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"


class PubMedProvider(LiteratureProvider):
    """ESearch for the best PMID, then EFetch its MEDLINE record."""

    def __init__(self, contact_email: str | None = None):
        if contact_email:
            Entrez.email = contact_email

    @property
    def name(self) -> str:
        return "pubmed"

    def lookup(
        self, query: str, candidate: CitationCandidate
    ) -> ResolvedLiteratureItem | None:
        try:
            pmid = _esearch_first(query)
            if pmid is None:
                return None
            record = _efetch(pmid)
        except Exception as exc:
            raise ResolverProviderError(
                self.name, "Entrez call failed", details=str(exc)
            ) from exc

        if record is None:
            return None
        return _parse_record(record, candidate)


# ── Entrez Wrappers ──────────────────────────────────────────────────


def _esearch_first(query: str) -> str | None:
    """Run ESearch and return the top-ranked PMID, if any."""
    handle = Entrez.esearch(db="pubmed", term=query, retmax=1)
    result = Entrez.read(handle)
    handle.close()
    ids = result.get("IdList") or []
    return ids[0] if ids else None


def _efetch(pmid: str) -> dict | None:
    """Fetch the MEDLINE record for a single PMID."""
    handle = Entrez.efetch(db="pubmed", id=pmid, rettype="medline", retmode="text")
    records = list(Medline.parse(handle))
    handle.close()
    return records[0] if records else None


# ── Record Parser ────────────────────────────────────────────────────


def _parse_record(rec: dict, candidate: CitationCandidate) -> ResolvedLiteratureItem:
    """Convert a MEDLINE record dict into a ResolvedLiteratureItem."""
    # Extract year from Date of Publication (DP) field, e.g. "2023 Jan"
    year = None
    dp = rec.get("DP", "")
    if dp:
        try:
            year = int(dp[:4])
        except ValueError:
            pass

    # DOI is in Article Identifier (AID) field, tagged with [doi]
    doi = None
    for aid in rec.get("AID", []):
        if aid.endswith("[doi]"):
            doi = aid.replace(" [doi]", "")
            break

    pmid = rec.get("PMID")
    return ResolvedLiteratureItem(
        id=pmid or doi or candidate.id,
        title=rec.get("TI") or fallback_title(candidate),
        abstract=rec.get("AB"),
        journal=rec.get("JT") or rec.get("TA"),
        year=year or candidate.year,
        authors=rec.get("AU") or None,
        url=PUBMED_URL.format(pmid=pmid) if pmid else doi_url(doi),
        source="pubmed",
        matched_citation=candidate,
    )
