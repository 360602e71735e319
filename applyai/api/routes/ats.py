import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from applyai.core.auth_dependency import get_db, get_current_user_obj
from applyai.db.models.user import User
from applyai.llm.runner import GenerationRunner, get_generation_runner
from applyai.schemas.ats import ATSScoreRequest, ATSScoreResponse
from applyai.services.ats_service import score_resume

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ats", tags=["ATS"])


@router.post("/score", response_model=ATSScoreResponse)
def score(
    payload: ATSScoreRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """
    Score a resume against a job description.

    Consumes one credit when the AI path produces the score. Falls back to
    keyword matching (method=basic, no credit) when AI is unavailable.
    """
    return score_resume(db, user, payload.resume_text, payload.job_description, runner)
