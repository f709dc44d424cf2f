"""Tests for heuristic citation detection."""

from casecite.literature.detector import (
    detect_reference_candidates,
    guess_journal,
    guess_title,
)

SMITH = "Smith J. (2019). Outcomes in delayed diagnosis. Journal of Surgery 45:112."


# ── Line Qualification ───────────────────────────────────────────────


def test_empty_text_returns_nothing():
    assert detect_reference_candidates("") == []
    assert detect_reference_candidates(None) == []


def test_line_without_year_is_skipped():
    text = "The patient was examined thoroughly in the emergency room."
    assert detect_reference_candidates(text) == []


def test_short_line_with_year_is_skipped():
    assert detect_reference_candidates("Seen in 2019.") == []


def test_years_outside_range_are_ignored():
    text = "Historical note from 1850 about surgical practice was reviewed."
    assert detect_reference_candidates(text) == []


def test_typical_citation_fields():
    [cand] = detect_reference_candidates(
        SMITH, source_document_id="d1", source_document_name="expert.pdf"
    )
    assert cand.raw_text == SMITH
    assert cand.year == 2019
    assert cand.title_guess == "Outcomes in delayed diagnosis"
    assert cand.journal_guess == "Journal of Surgery"
    assert cand.source_document_id == "d1"
    assert cand.source_document_name == "expert.pdf"
    assert cand.id.startswith("d1-0-")


def test_limit_stops_scanning():
    text = "\n".join(f"Reference number {i} published in 2010 by group" for i in range(10))
    assert len(detect_reference_candidates(text, limit=3)) == 3


def test_document_order_and_no_dedup():
    text = f"{SMITH}\nintro line without any year at all\n{SMITH}"
    cands = detect_reference_candidates(text)
    assert [c.raw_text for c in cands] == [SMITH, SMITH]
    assert cands[0].id != cands[1].id


def test_ids_default_to_doc_prefix():
    [cand] = detect_reference_candidates(SMITH)
    assert cand.id.startswith("doc-0-")


# ── Field Guesses ────────────────────────────────────────────────────


def test_quoted_title_preferred():
    line = 'Cohen A, "Early imaging in appendicitis" Radiology 2015;12:3'
    assert guess_title(line) == "Early imaging in appendicitis"


def test_curly_quoted_title():
    line = "Levi R. “Delayed cancer diagnosis outcomes” 2018"
    assert guess_title(line) == "Delayed cancer diagnosis outcomes"


def test_no_title_when_nothing_matches():
    assert guess_title("Seen at the clinic in 2019 for follow-up") is None


def test_short_after_paren_title_rejected():
    assert guess_title("Smith (2019). Short. More text") is None


def test_journal_before_volume():
    assert guess_journal("Some paper. Annals of Oncology 31(2): 10") == "Annals of Oncology"


def test_journal_too_short_rejected():
    assert guess_journal("see BMJ 2019") is None


def test_detection_is_repeatable():
    text = f"{SMITH}\nAnother cited study from 2007 in Annals of Surgery 12:4"
    first = detect_reference_candidates(text)
    second = detect_reference_candidates(text)
    assert [c.raw_text for c in first] == [c.raw_text for c in second]
    assert all(1900 <= c.year <= 2099 for c in first)
