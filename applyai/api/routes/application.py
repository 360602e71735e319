from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from applyai.core.auth_dependency import get_db, get_current_user_obj
from applyai.db.models.user import User
from applyai.llm.runner import GenerationRunner, get_generation_runner
from applyai.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationUpdate,
    PreparationStateResponse,
)
from applyai.services.application_service import (
    create_application,
    get_application,
    list_applications,
    update_application,
)
from applyai.services.preparation_service import get_preparation_state, prepare_application

router = APIRouter(prefix="/api/applications", tags=["Applications"])


# ✅ CREATE JOB APPLICATION
@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def create(
    payload: ApplicationCreate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return create_application(
        db, user,
        company=payload.company,
        job_title=payload.job_title,
        job_description=payload.job_description,
        location=payload.location,
        requirements=payload.requirements,
        notes=payload.notes,
    )


# ✅ GET ALL USER APPLICATIONS
@router.get("", response_model=List[ApplicationResponse])
def list_mine(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return list_applications(db, user.id)


@router.get("/{application_id}", response_model=ApplicationResponse)
def get_one(
    application_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return get_application(db, user.id, application_id)


# ✅ UPDATE TRACKING STATUS / NOTES
@router.put("/{application_id}", response_model=ApplicationResponse)
def update(
    application_id: int,
    payload: ApplicationUpdate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return update_application(db, user.id, application_id, payload.model_dump(exclude_unset=True))


# ✅ PREPARE (tailored CV + cover letter)
@router.post("/{application_id}/prepare", response_model=PreparationStateResponse)
def prepare(
    application_id: int,
    analyze: bool = Query(True, description="Also compute a job match score"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """
    Prepare an application: tailored CV, then a cover letter built on it.

    Each step uses AI when available and a template otherwise. Consumes one
    credit when at least one step was AI-generated.
    """
    return prepare_application(db, user, application_id, runner, analyze=analyze)


@router.get("/{application_id}/preparation", response_model=PreparationStateResponse)
def preparation_state(
    application_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return get_preparation_state(db, user, application_id)
