"""
ATS scoring pipeline: gate -> generate -> normalize -> record -> persist.
"""
import logging
import time
from typing import Any, Dict

from sqlalchemy.orm import Session

from applyai.core.errors import QuotaExceeded, UpstreamFailure, ValidationFailure
from applyai.db.models.ats_score import ATSScore
from applyai.db.models.user import User
from applyai.llm.runner import GenerationRunner
from applyai.services.quota_service import Denied, check_and_reserve, get_plan_for_user, record_usage
from applyai.services.scoring_service import extract_requirement_keywords, normalize

logger = logging.getLogger(__name__)

ATS_ENDPOINT = "ats_score"
ATS_SYSTEM_PROMPT = (
    "You are an expert applicant tracking system. Compare resumes against job "
    "descriptions and respond with valid JSON only."
)
ATS_SCORE_SCHEMA = {
    "score": "integer 0-100",
    "matched_factors": ["string"],
    "missing_factors": ["string"],
    "explanation": "string",
}
# Keeps prompts inside the model context window
MAX_INPUT_CHARS = 12000


def score_resume(
    db: Session,
    user: User,
    resume_text: str,
    job_description: str,
    runner: GenerationRunner,
) -> Dict[str, Any]:
    """
    Score a resume against a job description.

    The AI path is tried first; any upstream failure (no provider, timeout,
    error, malformed output) degrades to keyword-overlap scoring. The credit
    is only kept when the AI path produced the score; any other failure after
    the reservation refunds it before the error propagates.

    Raises:
        ValidationFailure: blank resume or job description (nothing reserved)
        QuotaExceeded: user is out of daily calls or credits
    """
    resume_text = (resume_text or "").strip()
    job_description = (job_description or "").strip()
    if not resume_text:
        raise ValidationFailure("Resume text is required", details={"field": "resume_text"})
    if not job_description:
        raise ValidationFailure("Job description is required", details={"field": "job_description"})

    decision = check_and_reserve(db, user.id, ATS_ENDPOINT)
    if isinstance(decision, Denied):
        raise QuotaExceeded(
            reason=decision.reason,
            endpoint=ATS_ENDPOINT,
            limit=decision.max_daily_api_calls,
            used=decision.api_calls_today,
            remaining=decision.credits_remaining,
        )

    started = time.monotonic()
    raw = None
    tokens_used = 0
    error_message = None
    try:
        try:
            prompt = runner.render_prompt("ats_score", {
                "resume_text": resume_text[:MAX_INPUT_CHARS],
                "job_description": job_description[:MAX_INPUT_CHARS],
            })
            response = runner.generate(
                "ats_score",
                prompt,
                schema=ATS_SCORE_SCHEMA,
                plan=get_plan_for_user(db, user.id),
                system_prompt=ATS_SYSTEM_PROMPT,
                temperature=0.2,
            )
            raw = response.content
            tokens_used = response.tokens_used
        except UpstreamFailure as e:
            error_message = f"{type(e).__name__}: {e}"
            logger.warning(f"ATS generation unavailable for user_id={user.id}, using basic scoring: {error_message}")

        result = normalize(raw, resume_text, extract_requirement_keywords(job_description))
        if raw is not None and result.method == "basic":
            error_message = "Malformed AI score response"

        record = ATSScore(
            user_id=user.id,
            score_percentage=result.score,
            matched_factors=result.matched_factors,
            missing_factors=result.missing_factors,
            explanation=result.explanation,
            method=result.method,
        )
        db.add(record)

        # Commits the score together with the usage event
        response_time_ms = int((time.monotonic() - started) * 1000)
        record_usage(
            db,
            user.id,
            ATS_ENDPOINT,
            tokens_used=tokens_used,
            success=result.method == "ai",
            response_time_ms=response_time_ms,
            error_message=error_message,
            usage_date=decision.usage_date,
        )
    except Exception as e:
        db.rollback()
        logger.error(f"ATS scoring failed for user_id={user.id}", exc_info=True)
        record_usage(
            db,
            user.id,
            ATS_ENDPOINT,
            tokens_used=tokens_used,
            success=False,
            response_time_ms=int((time.monotonic() - started) * 1000),
            error_message=f"{type(e).__name__}: {e}",
            usage_date=decision.usage_date,
        )
        raise

    db.refresh(record)

    logger.info(
        f"ATS score computed: user_id={user.id}, score={result.score}, method={result.method}, "
        f"tokens={tokens_used}, response_time_ms={response_time_ms}"
    )
    return {
        "id": record.id,
        "score": result.score,
        "matched_factors": result.matched_factors,
        "missing_factors": result.missing_factors,
        "explanation": result.explanation,
        "method": result.method,
        "tokens_used": tokens_used,
        "created_at": record.created_at,
    }
