"""Heuristic detection of citation-like lines in extracted document text."""

import logging
import re
import uuid

from casecite.literature.models import CitationCandidate

logger = logging.getLogger(__name__)

DEFAULT_DETECTION_LIMIT = 6
MIN_LINE_LENGTH = 20

_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_LINE_SPLIT_RE = re.compile(r"\r?\n+")
_WS_RE = re.compile(r"\s+")

_QUOTED_RE = re.compile(r"“([^”]+)”|\"([^\"]+)\"|‘([^’]+)’|'([^']+)'")
_AFTER_PAREN_RE = re.compile(r"\)[.,:]?\s*([^.]+)\.")
_MIN_TITLE_LENGTH = 8

# A run of capitalized words (with a few lowercase connectors) directly
# followed by a year, or by a volume number that opens ":", "(" or ";".
_JOURNAL_RE = re.compile(
    r"\b([A-Z][A-Za-z&\-]*(?:\s+(?:[A-Z][A-Za-z&\-]*|of|and|the|in|for|&))*)"
    r"\s+(?:(?:19|20)\d{2}\b|\d+\s*[:(;])"
)
_MIN_JOURNAL_LENGTH = 5


# ── Public API ───────────────────────────────────────────────────────


def detect_reference_candidates(
    text: str | None,
    limit: int = DEFAULT_DETECTION_LIMIT,
    source_document_id: str | None = None,
    source_document_name: str | None = None,
) -> list[CitationCandidate]:
    """Scan text for citation-like lines, in document order, up to ``limit``.

    A line qualifies only if it is at least 20 characters long and contains a
    year between 1900 and 2099. No deduplication is performed.
    """
    if not text:
        return []

    lines = [line.strip() for line in _LINE_SPLIT_RE.split(text)]
    lines = [line for line in lines if line]

    candidates: list[CitationCandidate] = []
    for index, line in enumerate(lines):
        if len(candidates) >= limit:
            break

        year_match = _YEAR_RE.search(line)
        if not year_match or len(line) < MIN_LINE_LENGTH:
            continue

        candidates.append(
            CitationCandidate(
                id=f"{source_document_id or 'doc'}-{index}-{uuid.uuid4()}",
                raw_text=line,
                source_document_id=source_document_id,
                source_document_name=source_document_name,
                title_guess=guess_title(line),
                journal_guess=guess_journal(line),
                year=int(year_match.group(0)),
            )
        )

    logger.debug(
        "Detected %d citation candidates in %s",
        len(candidates),
        source_document_name or source_document_id or "text",
    )
    return candidates


# ── Field Guesses ────────────────────────────────────────────────────


def guess_title(line: str) -> str | None:
    """Quoted text if present, else the sentence after a closing parenthesis."""
    quoted = _QUOTED_RE.search(line)
    if quoted:
        return next(g for g in quoted.groups() if g is not None)

    after_paren = _AFTER_PAREN_RE.search(line)
    if after_paren and len(after_paren.group(1)) > _MIN_TITLE_LENGTH:
        return _normalize_whitespace(after_paren.group(1))
    return None


def guess_journal(line: str) -> str | None:
    """Capitalized-word run immediately preceding a year or volume number."""
    match = _JOURNAL_RE.search(line)
    if match and len(match.group(1)) > _MIN_JOURNAL_LENGTH:
        return _normalize_whitespace(match.group(1))
    return None


def _normalize_whitespace(value: str) -> str:
    return _WS_RE.sub(" ", value).strip()
