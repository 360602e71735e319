"""
Application tracking CRUD.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from applyai.core.errors import APPLICATION_NOT_FOUND, NotFound, ValidationFailure
from applyai.db.models.application import APPLICATION_STATUSES, Application
from applyai.db.models.user import User
from applyai.services.scoring_service import extract_requirement_keywords

logger = logging.getLogger(__name__)


def create_application(
    db: Session,
    user: User,
    company: str,
    job_title: str,
    job_description: Optional[str] = None,
    location: Optional[str] = None,
    requirements: Optional[List[str]] = None,
    notes: Optional[str] = None,
) -> Application:
    """Create a tracked application; requirements are extracted from the description if not given."""
    if not requirements and job_description:
        requirements = extract_requirement_keywords(job_description)

    application = Application(
        user_id=user.id,
        company=company.strip(),
        job_title=job_title.strip(),
        location=location,
        job_description=job_description,
        requirements=list(requirements or []),
        notes=notes,
    )
    db.add(application)
    db.commit()
    db.refresh(application)

    logger.info(f"Application created: application_id={application.id}, user_id={user.id}, company={application.company}")
    return application


def list_applications(db: Session, user_id: int) -> List[Application]:
    return db.query(Application).filter(
        Application.user_id == user_id
    ).order_by(Application.created_at.desc(), Application.id.desc()).all()


def get_application(db: Session, user_id: int, application_id: int) -> Application:
    """
    Fetch an application owned by the user.

    Raises:
        NotFound: missing or owned by someone else
    """
    application = db.query(Application).filter(
        Application.id == application_id,
        Application.user_id == user_id
    ).first()
    if not application:
        raise NotFound("Application not found", code=APPLICATION_NOT_FOUND)
    return application


# Fields a user may change after creation; preparation columns are not among them
UPDATABLE_FIELDS = ("status", "notes")


def update_application(db: Session, user_id: int, application_id: int, changes: Dict[str, Any]) -> Application:
    """
    Update the tracking fields of an owned application.

    Only keys present in `changes` are applied, so notes can be cleared with None.

    Raises:
        NotFound: missing or owned by someone else
        ValidationFailure: unknown status
    """
    application = get_application(db, user_id, application_id)

    changes = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
    if changes.get("status", "") is None:
        changes.pop("status")
    if "status" in changes and changes["status"] not in APPLICATION_STATUSES:
        raise ValidationFailure(
            f"Unknown application status '{changes['status']}'",
            details={"field": "status", "allowed": list(APPLICATION_STATUSES)},
        )

    for key, value in changes.items():
        setattr(application, key, value)
    db.commit()
    db.refresh(application)

    logger.info(f"Application updated: application_id={application.id}, user_id={user_id}, fields={sorted(changes)}")
    return application
