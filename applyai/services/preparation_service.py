"""
Application preparation: tailor the CV, write a cover letter, record what was done.

State machine on Application.preparation_status:

    pending -> preparing -> ready | failed
    ready   -> preparing            (re-run)
    failed  -> preparing            (retry)

Every run passes through `preparing`. The flip into `preparing` is a
conditional UPDATE so two concurrent runs for one application cannot both
start. Each step is committed as soon as it completes; a client that goes
away mid-run leaves whatever was finished in place.

Each generation step tries the AI path first and falls back to a template on
any upstream failure. A run only fails when a step cannot produce even the
template (no CV, empty job description) or something unexpected breaks.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from applyai.core.config import PREPARATION_STALE_SECONDS
from applyai.core.errors import (
    ApplyAIError,
    GenerationFailed,
    InvalidTransition,
    PreparationInProgress,
    QuotaExceeded,
    UpstreamFailure,
)
from applyai.db.models.application import Application
from applyai.db.models.cv import Cv
from applyai.db.models.user import User
from applyai.llm.runner import GenerationRunner
from applyai.services.application_service import get_application
from applyai.services.cv_service import get_latest_cv
from applyai.services.quota_service import Denied, check_and_reserve, get_plan_for_user, record_usage
from applyai.services.scoring_service import MatchResult, extract_requirement_keywords, normalize

logger = logging.getLogger(__name__)

PREPARE_ENDPOINT = "application_prepare"

CV_TAILOR_SYSTEM_PROMPT = (
    "You are an expert resume writer who tailors CVs to specific job requirements. "
    "Highlight relevant skills and experience while staying truthful and keeping professional formatting."
)
COVER_LETTER_SYSTEM_PROMPT = (
    "You are an expert career advisor who writes compelling cover letters. "
    "Write professional, personalized letters that highlight relevant experience."
)
JOB_MATCH_SYSTEM_PROMPT = "You are an expert recruiter. Respond with valid JSON only."
JOB_MATCH_SCHEMA = {
    "score": "integer 0-100",
    "matched_factors": ["string"],
    "missing_factors": ["string"],
    "explanation": "string",
}

TOP_REQUIREMENTS = 5
COVER_LETTER_SKILLS = 3


class PreparationStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    PreparationStatus.PENDING: {PreparationStatus.PREPARING},
    PreparationStatus.PREPARING: {PreparationStatus.READY, PreparationStatus.FAILED},
    PreparationStatus.READY: {PreparationStatus.PREPARING},
    PreparationStatus.FAILED: {PreparationStatus.PREPARING},
}

# States a new run may start from
STARTABLE_STATES = [
    status.value for status, targets in ALLOWED_TRANSITIONS.items()
    if PreparationStatus.PREPARING in targets
]


def can_transition(current: str, target: str) -> bool:
    try:
        return PreparationStatus(target) in ALLOWED_TRANSITIONS[PreparationStatus(current)]
    except ValueError:
        return False


def transition(application: Application, target: PreparationStatus) -> None:
    """
    Move an application to a new preparation status.

    Raises:
        InvalidTransition: the move is not allowed from the current status
    """
    current = application.preparation_status
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot move preparation from '{current}' to '{PreparationStatus(target).value}'")
    application.preparation_status = PreparationStatus(target).value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


# ============================================
# Fallback templates
# ============================================

def prioritize_skills(skills: List[str], keywords: List[str]) -> List[str]:
    """Skills matching a job keyword first (either contains the other), original order otherwise."""
    lowered_keywords = [k.lower() for k in keywords if k]
    matching = [
        skill for skill in skills
        if any(skill.lower() in k or k in skill.lower() for k in lowered_keywords)
    ]
    others = [skill for skill in skills if skill not in matching]
    return matching + others


def tailor_cv_template(cv: Cv, application: Application, ordered_skills: List[str]) -> str:
    return (
        f"SKILLS: {', '.join(ordered_skills) or 'Not specified'}\n\n"
        f"EXPERIENCE: {cv.experience or 'Professional experience in various roles'}\n\n"
        f"EDUCATION: {cv.education or 'Educational background'}\n\n"
        f"Note: This CV has been optimized for the {application.job_title} position at {application.company}."
    )


def cover_letter_template(cv: Cv, user: User, application: Application, ordered_skills: List[str]) -> str:
    name = cv.full_name or user.full_name
    email = cv.email or user.email or ""
    skills = ", ".join(ordered_skills[:COVER_LETTER_SKILLS]) or "relevant skills"

    return f"""Dear Hiring Manager,

I am writing to express my strong interest in the {application.job_title} position at {application.company}. With my background in {skills} and proven experience in the field, I am excited about the opportunity to contribute to your team.

In my previous roles, I have developed expertise in {skills} which directly aligns with your requirements. I am particularly drawn to {application.company} because of its reputation for innovation and excellence in the industry.

I would welcome the opportunity to discuss how my skills and enthusiasm can contribute to your team's success. Thank you for considering my application.

Best regards,
{name}
{email}""".rstrip()


# ============================================
# Steps
# ============================================

def _job_context(application: Application, keywords: List[str]) -> Dict[str, Any]:
    return {
        "job_title": application.job_title,
        "company": application.company,
        "location": application.location or "Not specified",
        "requirements": ", ".join(keywords) or "Not specified",
        "job_description": application.job_description,
    }


def analyze_match(
    runner: GenerationRunner,
    application: Application,
    cv: Cv,
    keywords: List[str],
    plan: str,
) -> Tuple[MatchResult, Dict[str, Any]]:
    """Job match score; the normalizer falls back to keyword overlap."""
    started = time.monotonic()
    raw = None
    tokens_used = 0
    fallback_reason = None
    try:
        prompt = runner.render_prompt("job_match", {
            **_job_context(application, keywords),
            "skills": ", ".join(cv.skills or []) or "Not specified",
            "experience": cv.experience or "Not specified",
            "education": cv.education or "Not specified",
        })
        response = runner.generate(
            "job_match", prompt,
            schema=JOB_MATCH_SCHEMA,
            plan=plan,
            system_prompt=JOB_MATCH_SYSTEM_PROMPT,
            temperature=0.2,
        )
        raw = response.content
        tokens_used = response.tokens_used
    except UpstreamFailure as e:
        fallback_reason = type(e).__name__

    candidate_terms = list(cv.skills or []) + [cv.experience or ""]
    result = normalize(raw, candidate_terms, keywords)
    if raw is not None and result.method == "basic":
        fallback_reason = "MalformedResponse"

    meta = {
        "method": result.method,
        "score": result.score,
        "tokens_used": tokens_used,
        "processing_time_ms": _elapsed_ms(started),
    }
    if fallback_reason:
        meta["fallback_reason"] = fallback_reason
    return result, meta


def tailor_cv(
    runner: GenerationRunner,
    application: Application,
    cv: Cv,
    keywords: List[str],
    ordered_skills: List[str],
    plan: str,
) -> Tuple[str, Dict[str, Any]]:
    """Step 1: tailored CV text plus step metadata."""
    started = time.monotonic()
    try:
        prompt = runner.render_prompt("cv_tailor", {
            **_job_context(application, keywords),
            "skills": ", ".join(cv.skills or []) or "Not specified",
            "experience": cv.experience or "Not specified",
            "education": cv.education or "Not specified",
        })
        response = runner.generate(
            "cv_tailor", prompt,
            plan=plan,
            system_prompt=CV_TAILOR_SYSTEM_PROMPT,
            temperature=0.3,
        )
        return response.content.strip(), {
            "method": "ai",
            "tokens_used": response.tokens_used,
            "processing_time_ms": _elapsed_ms(started),
            "key_changes": ["AI-optimized for job requirements"],
        }
    except UpstreamFailure as e:
        logger.warning(f"CV tailoring falling back to template: application_id={application.id}, reason={type(e).__name__}")
        fallback_reason = type(e).__name__

    return tailor_cv_template(cv, application, ordered_skills), {
        "method": "basic",
        "tokens_used": 0,
        "processing_time_ms": _elapsed_ms(started),
        "key_changes": ["Reordered skills to match job requirements"],
        "fallback_reason": fallback_reason,
    }


def generate_cover_letter(
    runner: GenerationRunner,
    application: Application,
    cv: Cv,
    user: User,
    tailored_cv: str,
    keywords: List[str],
    ordered_skills: List[str],
    plan: str,
) -> Tuple[str, Dict[str, Any]]:
    """Step 2: cover letter built on the tailored CV, plus step metadata."""
    started = time.monotonic()
    try:
        prompt = runner.render_prompt("cover_letter", {
            **_job_context(application, keywords),
            "candidate_name": cv.full_name or user.full_name,
            "tailored_cv": tailored_cv,
        })
        response = runner.generate(
            "cover_letter", prompt,
            plan=plan,
            system_prompt=COVER_LETTER_SYSTEM_PROMPT,
            temperature=0.7,
        )
        return response.content.strip(), {
            "method": "ai",
            "tokens_used": response.tokens_used,
            "processing_time_ms": _elapsed_ms(started),
        }
    except UpstreamFailure as e:
        logger.warning(f"Cover letter falling back to template: application_id={application.id}, reason={type(e).__name__}")
        fallback_reason = type(e).__name__

    return cover_letter_template(cv, user, application, ordered_skills), {
        "method": "basic",
        "tokens_used": 0,
        "processing_time_ms": _elapsed_ms(started),
        "template_used": "default_cover_letter",
        "fallback_reason": fallback_reason,
    }


def summarize_method(methods: List[str]) -> str:
    """'ai' if every step used AI, 'basic' if none did, 'mixed' otherwise."""
    if methods and all(m == "ai" for m in methods):
        return "ai"
    if any(m == "ai" for m in methods):
        return "mixed"
    return "basic"


# ============================================
# Orchestration
# ============================================

def _is_stale(application: Application, now: Optional[datetime] = None) -> bool:
    updated_at = application.updated_at
    if updated_at is None:
        return True
    if updated_at.tzinfo is None:
        # SQLite returns naive UTC timestamps
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return (now or _utcnow()) - updated_at > timedelta(seconds=PREPARATION_STALE_SECONDS)


def _release_if_stale(db: Session, application: Application) -> None:
    """Fail a run that has sat in `preparing` past the stale window."""
    if application.preparation_status != PreparationStatus.PREPARING.value or not _is_stale(application):
        return

    transition(application, PreparationStatus.FAILED)
    application.preparation_metadata = {
        **(application.preparation_metadata or {}),
        "error": "Preparation abandoned",
        "failed_at": _utcnow().isoformat(),
    }
    db.commit()
    db.refresh(application)
    logger.warning(f"Stale preparation released: application_id={application.id}")


def _begin_preparation(db: Session, application: Application) -> bool:
    """Atomically move into `preparing`, clearing previous outputs. False if another run won."""
    result = db.execute(
        update(Application)
        .where(
            Application.id == application.id,
            Application.preparation_status.in_(STARTABLE_STATES),
        )
        .values(
            preparation_status=PreparationStatus.PREPARING.value,
            tailored_cv=None,
            cover_letter=None,
            preparation_metadata={"started_at": _utcnow().isoformat()},
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(application)
    return result.rowcount == 1


def _metadata(started_at: str, steps: Dict[str, Dict[str, Any]], **extra) -> Dict[str, Any]:
    # Always a new dict: in-place JSON mutations are not tracked by the ORM
    required = [steps[name]["method"] for name in ("tailored_cv", "cover_letter") if name in steps]
    return {
        "started_at": started_at,
        "steps": {name: dict(meta) for name, meta in steps.items()},
        "method": summarize_method(required),
        "total_tokens": sum(meta.get("tokens_used", 0) for meta in steps.values()),
        **extra,
    }


def _mark_failed(
    db: Session,
    application: Application,
    started_at: str,
    steps: Dict[str, Dict[str, Any]],
    error: str,
) -> None:
    try:
        transition(application, PreparationStatus.FAILED)
        application.preparation_metadata = _metadata(
            started_at, steps, error=error, failed_at=_utcnow().isoformat()
        )
        db.commit()
    except Exception:
        db.rollback()
        raise


def prepare_application(
    db: Session,
    user: User,
    application_id: int,
    runner: GenerationRunner,
    analyze: bool = True,
) -> Dict[str, Any]:
    """
    Run the preparation pipeline for one application.

    Args:
        db: Database session
        user: Owner of the application
        application_id: Application to prepare
        runner: Generation runner
        analyze: Also compute a job match score before tailoring

    Returns:
        Preparation state (see get_preparation_state)

    Raises:
        NotFound: application missing or not owned by the user
        PreparationInProgress: a run is already in flight
        QuotaExceeded: user is out of daily calls or credits (state unchanged)
        GenerationFailed: no CV, empty job description, or an unexpected step failure
    """
    application = get_application(db, user.id, application_id)
    _release_if_stale(db, application)
    if application.preparation_status == PreparationStatus.PREPARING.value:
        raise PreparationInProgress(
            "Application preparation already in progress",
            details={"application_id": application.id},
        )

    decision = check_and_reserve(db, user.id, PREPARE_ENDPOINT)
    if isinstance(decision, Denied):
        raise QuotaExceeded(
            reason=decision.reason,
            endpoint=PREPARE_ENDPOINT,
            limit=decision.max_daily_api_calls,
            used=decision.api_calls_today,
            remaining=decision.credits_remaining,
        )

    started = time.monotonic()
    try:
        begun = _begin_preparation(db, application)
    except Exception as e:
        db.rollback()
        record_usage(
            db, user.id, PREPARE_ENDPOINT,
            success=False,
            response_time_ms=_elapsed_ms(started),
            error_message=f"{type(e).__name__}: {e}",
            usage_date=decision.usage_date,
        )
        raise
    if not begun:
        record_usage(
            db, user.id, PREPARE_ENDPOINT,
            success=False,
            response_time_ms=_elapsed_ms(started),
            error_message="Preparation already in progress",
            usage_date=decision.usage_date,
        )
        raise PreparationInProgress(
            "Application preparation already in progress",
            details={"application_id": application.id},
        )

    started_at = application.preparation_metadata.get("started_at")
    steps: Dict[str, Dict[str, Any]] = {}
    logger.info(f"Preparation started: application_id={application.id}, user_id={user.id}")

    try:
        cv = get_latest_cv(db, user.id)
        job_description = (application.job_description or "").strip()
        if cv is None:
            raise GenerationFailed("No CV uploaded. Upload a CV before preparing an application.", details={"missing": "cv"})
        if not job_description:
            raise GenerationFailed("Application has no job description to prepare against.", details={"missing": "job_description"})

        plan = get_plan_for_user(db, user.id)
        keywords = list(application.requirements or []) or extract_requirement_keywords(job_description)
        keywords = keywords[:TOP_REQUIREMENTS]
        ordered_skills = prioritize_skills(list(cv.skills or []), keywords)

        if analyze:
            match, steps["analysis"] = analyze_match(runner, application, cv, keywords, plan)
            application.match_score = match.score
            application.preparation_metadata = _metadata(started_at, steps)
            db.commit()

        tailored, steps["tailored_cv"] = tailor_cv(runner, application, cv, keywords, ordered_skills, plan)
        application.tailored_cv = tailored
        application.preparation_metadata = _metadata(started_at, steps)
        db.commit()

        letter, steps["cover_letter"] = generate_cover_letter(
            runner, application, cv, user, tailored, keywords, ordered_skills, plan
        )
        application.cover_letter = letter
        application.preparation_metadata = _metadata(started_at, steps, prepared_at=_utcnow().isoformat())
        transition(application, PreparationStatus.READY)
        db.commit()
    except Exception as e:
        db.rollback()
        error = e.message if isinstance(e, ApplyAIError) else "Unexpected preparation error"
        try:
            _mark_failed(db, application, started_at, steps, error)
        finally:
            record_usage(
                db, user.id, PREPARE_ENDPOINT,
                tokens_used=sum(meta.get("tokens_used", 0) for meta in steps.values()),
                success=False,
                response_time_ms=_elapsed_ms(started),
                error_message=error if isinstance(e, ApplyAIError) else f"{type(e).__name__}: {e}",
                usage_date=decision.usage_date,
            )
        if isinstance(e, ApplyAIError):
            logger.warning(f"Preparation failed: application_id={application.id}, error={error}")
            raise
        logger.error(f"Preparation failed: application_id={application.id}", exc_info=True)
        raise GenerationFailed("Application preparation failed", details={"application_id": application.id}) from e

    metadata = application.preparation_metadata
    record_usage(
        db, user.id, PREPARE_ENDPOINT,
        tokens_used=metadata["total_tokens"],
        success=metadata["method"] != "basic",
        response_time_ms=_elapsed_ms(started),
        usage_date=decision.usage_date,
    )
    logger.info(
        f"Preparation ready: application_id={application.id}, method={metadata['method']}, "
        f"tokens={metadata['total_tokens']}"
    )
    return get_preparation_state(db, user, application.id)


def get_preparation_state(db: Session, user: User, application_id: int) -> Dict[str, Any]:
    application = get_application(db, user.id, application_id)
    return {
        "application_id": application.id,
        "status": application.preparation_status,
        "tailored_cv": application.tailored_cv,
        "cover_letter": application.cover_letter,
        "match_score": application.match_score,
        "metadata": application.preparation_metadata or {},
        "updated_at": application.updated_at,
    }
