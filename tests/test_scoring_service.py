"""
Tests for match score normalization and the keyword fallback.
"""
import json
import pytest
from pydantic import TypeAdapter

from applyai.services.scoring_service import (
    AiMatchResult,
    BasicMatchResult,
    MatchResult,
    basic_score,
    extract_requirement_keywords,
    normalize,
    normalize_terms,
)


RESUME = "Backend engineer. Python, Django, PostgreSQL and Docker on AWS. Some JS."
REQUIRED = ["python", "javascript", "kubernetes", "aws"]


def test_well_formed_dict_maps_to_ai_result():
    result = normalize({
        "score": 82.6,
        "matched_factors": ["Python", "AWS", "python"],
        "missing_factors": ["Kubernetes"],
        "explanation": "Solid backend fit.",
    })

    assert isinstance(result, AiMatchResult)
    assert result.method == "ai"
    assert result.score == 83
    assert result.matched_factors == ["AWS", "Python"]
    assert result.missing_factors == ["Kubernetes"]
    assert result.explanation == "Solid backend fit."


def test_aliases_and_fenced_json():
    raw = "Here you go:\n```json\n" + json.dumps({
        "matchScore": 40,
        "matched_skills": ["SQL"],
        "missing": ["Go"],
    }) + "\n```"

    result = normalize(raw)

    assert result.method == "ai"
    assert result.score == 40
    assert result.matched_factors == ["SQL"]
    assert result.missing_factors == ["Go"]
    assert result.explanation


@pytest.mark.parametrize("score,expected", [(-15, 0), (250, 100), ("67", 67)])
def test_score_clamped(score, expected):
    assert normalize({"score": score}).score == expected


@pytest.mark.parametrize("raw", [
    None,
    "",
    "not json at all",
    "[1, 2, 3]",
    {"matched_factors": ["Python"]},
    {"score": "high"},
    {"score": True},
    {"score": float("nan")},
    {"score": float("inf")},
    {"score": 50, "matched_factors": "Python"},
    42,
    object(),
])
def test_malformed_input_falls_back_without_raising(raw):
    result = normalize(raw, RESUME, REQUIRED)

    assert isinstance(result, BasicMatchResult)
    assert result.method == "basic"
    assert 0 <= result.score <= 100
    assert "basic keyword match" in result.explanation


def test_basic_score_uses_aliases():
    result = basic_score(RESUME, REQUIRED)

    # python, javascript (from "JS"), aws matched; kubernetes missing
    assert result.matched_factors == ["aws", "javascript", "python"]
    assert result.missing_factors == ["kubernetes"]
    assert result.score == 75
    assert result.explanation.startswith("AI analysis unavailable")
    assert "3/4" in result.explanation


def test_basic_score_without_requirements_is_zero():
    result = normalize(None, RESUME, [])

    assert result.method == "basic"
    assert result.score == 0
    assert result.matched_factors == []


def test_normalize_terms_folds_aliases_and_stopwords():
    terms = normalize_terms(["K8s", "ReactJS", "the Node", "Postgres."])

    assert terms == {"kubernetes", "react", "node.js", "postgresql"}
    assert normalize_terms(None) == set()
    assert normalize_terms([None, 3]) == set()


def test_extract_requirement_keywords_known_patterns():
    jd = "We need Python and Node.js experience, Docker, and a bachelor degree. Agile team."

    keywords = extract_requirement_keywords(jd)

    assert "python" in keywords
    assert "node.js" in keywords
    assert "docker" in keywords
    assert "bachelor" in keywords
    assert "agile" in keywords


def test_extract_requirement_keywords_frequency_fallback():
    jd = "Warehouse forklift operator. Forklift licence preferred. Shift schedules vary."

    keywords = extract_requirement_keywords(jd)

    assert keywords[0] == "forklift"
    assert len(keywords) <= 15


def test_match_result_discriminated_by_method():
    adapter = TypeAdapter(MatchResult)

    ai = adapter.validate_python({"method": "ai", "score": 10})
    basic = adapter.validate_python({"method": "basic", "score": 10})

    assert isinstance(ai, AiMatchResult)
    assert isinstance(basic, BasicMatchResult)
