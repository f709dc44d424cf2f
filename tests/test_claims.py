"""Tests for claim parsing and the claim extraction agent."""

import json
from unittest.mock import MagicMock

import pytest

from casecite.agents.claims import (
    DEFAULT_CATEGORY,
    ClaimExtractionOutput,
    RawClaim,
    extract_claims,
    normalize_claim,
    parse_claims,
)
from casecite.agents.models import GenerationResult
from casecite.core.errors import GenerationError


def test_normalize_full_claim():
    claim = normalize_claim(
        RawClaim(
            claimTitle=" Delayed CT ",
            claimSummary="The CT should have been done on day one.",
            category="Imaging",
            confidence=0.876,
            sourceExcerpt="CT was performed on day 4",
            recommendation="Ask about triage protocol",
            tags=["CT", " ", "Delay "],
        )
    )
    assert claim.claim_title == "Delayed CT"
    assert claim.confidence == 0.88
    assert claim.tags == ["CT", "Delay"]
    assert claim.source_excerpt == "CT was performed on day 4"


@pytest.mark.parametrize("value, expected", [(1.7, 1.0), (-0.2, 0.0), (None, None)])
def test_confidence_clamped(value, expected):
    claim = normalize_claim(RawClaim(claimTitle="T", claimSummary="S", confidence=value))
    assert claim.confidence == expected


def test_category_defaults():
    claim = normalize_claim(RawClaim(claimTitle="T", claimSummary="S", category="  "))
    assert claim.category == DEFAULT_CATEGORY


@pytest.mark.parametrize(
    "raw",
    [
        RawClaim(claimTitle="", claimSummary="S"),
        RawClaim(claimTitle="T", claimSummary="   "),
        RawClaim(claimSummary="S"),
    ],
)
def test_incomplete_claims_dropped(raw):
    assert normalize_claim(raw) is None


def test_parse_claims_filters():
    raw = json.dumps(
        {
            "claims": [
                {"claimTitle": "A", "claimSummary": "a"},
                {"claimTitle": "", "claimSummary": "b"},
                {"claimTitle": "C", "claimSummary": "c", "confidence": 0.5},
            ]
        }
    )
    claims = parse_claims(raw)
    assert [c.claim_title for c in claims] == ["A", "C"]


def test_parse_claims_missing_key():
    assert parse_claims("{}") == []


def test_parse_claims_invalid_json():
    with pytest.raises(GenerationError, match="invalid JSON"):
        parse_claims("not json at all")


def test_parse_claims_coerces_fields_individually():
    raw = json.dumps(
        {
            "claims": [
                {"claimTitle": "Delay", "claimSummary": "CT late", "confidence": "high"},
                {"claimTitle": "B", "claimSummary": "ok", "tags": ["CT", 3]},
            ]
        }
    )
    claims = parse_claims(raw)
    assert len(claims) == 2
    assert claims[0].confidence is None
    assert claims[1].tags == ["CT"]


def test_parse_claims_wrong_typed_text_fields():
    raw = json.dumps(
        {
            "claims": [
                {"claimTitle": "A", "claimSummary": "a", "category": 7, "tags": "CT"},
                {"claimTitle": 12, "claimSummary": "dropped"},
                "not a claim",
            ]
        }
    )
    claims = parse_claims(raw)
    assert [c.claim_title for c in claims] == ["A"]
    assert claims[0].category == DEFAULT_CATEGORY
    assert claims[0].tags == []


@pytest.mark.parametrize("confidence, expected", [("0.7", 0.7), (True, None), ("nan", None)])
def test_parse_claims_confidence_coercion(confidence, expected):
    claim = {"claimTitle": "A", "claimSummary": "a", "confidence": confidence}
    raw = json.dumps({"claims": [claim]})
    assert parse_claims(raw)[0].confidence == expected


@pytest.mark.parametrize("raw", ['{"claims": null}', "[]", '{"claims": {}}'])
def test_parse_claims_without_claim_list(raw):
    assert parse_claims(raw) == []


def test_schema_uses_camel_case():
    schema = json.dumps(ClaimExtractionOutput.model_json_schema())
    assert "claimTitle" in schema
    assert "sourceExcerpt" in schema


def test_extract_claims_requests_schema():
    generator = MagicMock()
    generator.generate.return_value = GenerationResult(
        text=json.dumps({"claims": [{"claimTitle": "A", "claimSummary": "a"}]}),
        model="qwen3:8b",
        duration_ms=10,
    )
    claims = extract_claims(generator, "prompt", max_tokens=1500)
    assert len(claims) == 1
    kwargs = generator.generate.call_args.kwargs
    assert kwargs["response_format"] == ClaimExtractionOutput.model_json_schema()
    assert kwargs["max_tokens"] == 1500
