from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from applyai.core.auth_dependency import get_db, get_current_user_obj
from applyai.db.models.cv import Cv
from applyai.db.models.user import User
from applyai.schemas.cv import CvCreate, CvResponse
from applyai.services.cv_service import create_cv, require_latest_cv

router = APIRouter(prefix="/api/cv", tags=["CV"])


# ✅ UPLOAD CV TEXT
@router.post("", response_model=CvResponse, status_code=status.HTTP_201_CREATED)
def upload_cv(
    payload: CvCreate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return create_cv(
        db, user,
        file_name=payload.file_name,
        content=payload.content,
        skills=payload.skills,
        experience=payload.experience,
        education=payload.education,
    )


# ✅ LATEST CV
@router.get("", response_model=CvResponse)
def get_cv(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return require_latest_cv(db, user.id)


# ✅ ALL CVS
@router.get("/all", response_model=List[CvResponse])
def list_cvs(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return db.query(Cv).filter(Cv.user_id == user.id).order_by(Cv.created_at.desc(), Cv.id.desc()).all()
