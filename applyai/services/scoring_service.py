"""
Score normalization for job-match and ATS results.

normalize() turns whatever the generation service returned into a MatchResult.
A well-formed response maps straight to an AiMatchResult with the score clamped
to 0-100. Anything else (no response, non-JSON, wrong shape, non-finite score)
falls back to deterministic keyword overlap and yields a BasicMatchResult.
normalize() never raises for bad input; deciding whether the AI call worked is
left to the caller.
"""
import json
import logging
import math
import re
from collections import Counter
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Set, Union

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

BASIC_EXPLANATION_TEMPLATE = (
    "AI analysis unavailable, showing basic keyword match: "
    "{matched}/{required} required keywords found."
)
NO_REQUIREMENTS_EXPLANATION = (
    "AI analysis unavailable, and no requirement keywords were identified for basic scoring."
)

TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9+#.]*")

# Common spellings folded onto one canonical token
SKILL_ALIASES: Dict[str, str] = {
    "js": "javascript",
    "ecmascript": "javascript",
    "es6": "javascript",
    "es2015": "javascript",
    "ts": "typescript",
    "reactjs": "react",
    "react.js": "react",
    "nodejs": "node.js",
    "node": "node.js",
    "py": "python",
    "python3": "python",
    "jdk": "java",
    "jre": "java",
    "css3": "css",
    "html5": "html",
    "postgres": "postgresql",
    "k8s": "kubernetes",
    "golang": "go",
    "github": "git",
    "gitlab": "git",
}

STOPWORDS: Set[str] = {
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "is", "it",
    "of", "on", "or", "our", "the", "to", "we", "will", "with", "you", "your", "this",
    "that", "have", "has", "who", "what", "about", "able", "work", "working", "team",
    "role", "join", "looking", "strong", "good", "plus", "etc", "must", "should",
}

# Keyword patterns for pulling requirements out of a free-text job description
REQUIREMENT_PATTERNS = [
    re.compile(r"\b(python|java|javascript|typescript|react|angular|vue|sql|html|css|php|ruby|golang|rust|scala|kotlin|swift)\b"),
    re.compile(r"\b(aws|azure|gcp|google cloud|docker|kubernetes|terraform|git|linux|mysql|postgresql|mongodb|redis|node\.?js|express|django|flask|fastapi|spring|rails|graphql)\b"),
    re.compile(r"\b(machine learning|data analysis|analytics|excel|tableau|power bi|statistics|etl)\b"),
    re.compile(r"\b(agile|scrum|devops|ci/cd|kanban|lean)\b"),
    re.compile(r"\b(project management|product management|program management|stakeholder management|operations|problem solving|communication|leadership)\b"),
    re.compile(r"\b(bachelor|master|mba|phd|degree|certification)\b"),
]
MAX_FALLBACK_KEYWORDS = 15


# ============================================
# Result models
# ============================================

class MatchResultBase(BaseModel):
    score: int = Field(..., ge=0, le=100, description="Match score 0-100")
    matched_factors: List[str] = Field(default_factory=list, description="Requirements the candidate meets")
    missing_factors: List[str] = Field(default_factory=list, description="Requirements the candidate lacks")
    explanation: str = Field("", description="Human-readable explanation")


class AiMatchResult(MatchResultBase):
    """Score produced by the generation service."""
    method: Literal["ai"] = "ai"


class BasicMatchResult(MatchResultBase):
    """Deterministic keyword-overlap score used when the AI path failed or was skipped."""
    method: Literal["basic"] = "basic"


MatchResult = Annotated[Union[AiMatchResult, BasicMatchResult], Field(discriminator="method")]


class AiScorePayload(BaseModel):
    """Shape expected from the generation service."""
    score: float = Field(validation_alias=AliasChoices("score", "match_score", "matchScore", "ats_score"))
    matched_factors: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("matched_factors", "matched", "matched_skills"),
    )
    missing_factors: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("missing_factors", "missing", "missing_skills"),
    )
    explanation: str = Field("", validation_alias=AliasChoices("explanation", "summary"))

    @field_validator("score", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("score must be a number")
        return value

    @field_validator("score")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("score must be finite")
        return value

    @field_validator("matched_factors", "missing_factors", mode="before")
    @classmethod
    def _coerce_factors(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("factors must be a list")
        factors = []
        for item in value:
            if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                continue
            text = str(item).strip()
            if text:
                factors.append(text)
        return factors

    @field_validator("explanation", mode="before")
    @classmethod
    def _coerce_explanation(cls, value: Any) -> Any:
        return "" if value is None else value


# ============================================
# Term normalization
# ============================================

def normalize_terms(terms: Any) -> Set[str]:
    """
    Normalize free text or a list of skills into a set of comparable tokens.

    Lower-cases, strips punctuation, drops stopwords and folds common aliases
    (js -> javascript, k8s -> kubernetes).
    """
    if terms is None:
        return set()
    if isinstance(terms, str):
        terms = [terms]
    try:
        items = list(terms)
    except TypeError:
        return set()

    tokens: Set[str] = set()
    for term in items:
        if not isinstance(term, str):
            continue
        for raw in TOKEN_PATTERN.findall(term.lower()):
            token = raw.strip(".")
            if not token or token in STOPWORDS:
                continue
            tokens.add(SKILL_ALIASES.get(token, token))
    return tokens


def extract_requirement_keywords(job_description: str) -> List[str]:
    """
    Pull requirement keywords out of a job description without AI.

    Known skill/qualification patterns first; if none match, the most frequent
    significant words.
    """
    text = (job_description or "").lower()
    found = []
    for pattern in REQUIREMENT_PATTERNS:
        for match in pattern.findall(text):
            keyword = re.sub(r"\s+", " ", match).strip()
            if keyword and keyword not in found:
                found.append(keyword)
    if found:
        return found

    words = [
        token.strip(".") for token in TOKEN_PATTERN.findall(text)
        if len(token.strip(".")) > 3 and token.strip(".") not in STOPWORDS
    ]
    return [word for word, _ in Counter(words).most_common(MAX_FALLBACK_KEYWORDS)]


def clamp_score(value: float) -> int:
    return int(max(0, min(100, round(value))))


def _unique_sorted(factors: Iterable[str]) -> List[str]:
    seen = {}
    for factor in factors:
        seen.setdefault(factor.lower(), factor)
    return [seen[key] for key in sorted(seen)]


# ============================================
# Normalization
# ============================================

def parse_raw_response(raw: Any) -> Optional[Dict[str, Any]]:
    """Extract a JSON object from a raw response; None when there is none."""
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = raw.strip()
    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    candidates = [fenced.group(1)] if fenced else [text]
    embedded = re.search(r"\{.*\}", text, re.DOTALL)
    if embedded:
        candidates.append(embedded.group())

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def basic_score(candidate_terms: Any, required_terms: Any) -> BasicMatchResult:
    """Keyword overlap: |candidate ∩ required| / |required|, scaled to 0-100."""
    candidate = normalize_terms(candidate_terms)
    required = normalize_terms(required_terms)

    if not required:
        return BasicMatchResult(score=0, explanation=NO_REQUIREMENTS_EXPLANATION)

    matched = sorted(required & candidate)
    missing = sorted(required - candidate)
    score = clamp_score(len(matched) / len(required) * 100)

    return BasicMatchResult(
        score=score,
        matched_factors=matched,
        missing_factors=missing,
        explanation=BASIC_EXPLANATION_TEMPLATE.format(matched=len(matched), required=len(required)),
    )


def normalize(raw: Any, candidate_terms: Any = None, required_terms: Any = None) -> MatchResult:
    """
    Convert a raw generation response (or None) into a MatchResult.

    Args:
        raw: Parsed dict, JSON text (optionally fenced), or None when the upstream call failed
        candidate_terms: Candidate skills or resume text, used by the fallback
        required_terms: Requirement keywords or job description text, used by the fallback

    Returns:
        AiMatchResult when raw is well-formed, otherwise BasicMatchResult
    """
    try:
        payload = parse_raw_response(raw)
        if payload is not None:
            parsed = AiScorePayload.model_validate(payload)
            score = clamp_score(parsed.score)
            return AiMatchResult(
                score=score,
                matched_factors=_unique_sorted(parsed.matched_factors),
                missing_factors=_unique_sorted(parsed.missing_factors),
                explanation=parsed.explanation.strip() or f"AI match score: {score}%.",
            )
        if raw is not None:
            logger.warning("AI score response was not a JSON object, using basic scoring")
    except ValidationError as e:
        logger.warning(f"Malformed AI score response ({e.error_count()} errors), using basic scoring")
    except Exception as e:
        logger.warning(f"Unexpected AI score response ({type(e).__name__}: {e}), using basic scoring")

    return basic_score(candidate_terms, required_terms)
