"""
CV storage and rule-based parsing.

Parsing here is deliberately unmetered: skills, contact details and the
experience/education sections are pulled out with regular expressions so a
CV can be used for preparation without spending a credit.
"""
import logging
import re
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from applyai.core.errors import CV_NOT_FOUND, NotFound, ValidationFailure
from applyai.db.models.cv import Cv
from applyai.db.models.user import User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[\w._%+-]+@[\w.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

COMMON_SKILLS = [
    "javascript", "typescript", "python", "java", "react", "angular", "vue",
    "node.js", "express", "mongodb", "postgresql", "mysql", "sql",
    "html", "css", "sass", "tailwind", "bootstrap", "git", "docker",
    "kubernetes", "aws", "azure", "gcp", "linux", "windows",
    "figma", "photoshop", "illustrator", "sketch",
    "django", "flask", "fastapi", "redis", "graphql", "terraform",
    "excel", "tableau", "machine learning", "agile", "scrum",
]

SECTION_HEADINGS = {
    "experience": ("experience", "work experience", "professional experience", "employment history"),
    "education": ("education", "academic background", "qualifications"),
}
_ALL_HEADINGS = {heading for headings in SECTION_HEADINGS.values() for heading in headings} | {
    "skills", "technical skills", "summary", "profile", "projects", "certifications", "languages",
}


def _skill_pattern(skill: str) -> re.Pattern:
    # "node.js" also matches "node" / "nodejs"
    if skill.endswith(".js"):
        stem = re.escape(skill[:-3])
        return re.compile(rf"\b{stem}(\.?js)?\b")
    return re.compile(rf"\b{re.escape(skill)}\b")


_SKILL_PATTERNS = [(skill, _skill_pattern(skill)) for skill in COMMON_SKILLS]


def extract_skills(text: str) -> List[str]:
    lowered = (text or "").lower()
    return [skill for skill, pattern in _SKILL_PATTERNS if pattern.search(lowered)]


def extract_section(text: str, section: str) -> Optional[str]:
    """Return the body under a section heading, up to the next known heading."""
    lines = (text or "").splitlines()
    headings = SECTION_HEADINGS[section]
    collected = []
    inside = False
    for line in lines:
        key = line.strip().strip(":").strip().lower()
        if key in headings:
            inside = True
            continue
        if inside and key in _ALL_HEADINGS:
            break
        if inside and line.strip():
            collected.append(line.strip())
    return "\n".join(collected) or None


def parse_cv_text(text: str) -> Dict:
    """Rule-based extraction of contact details, skills and sections."""
    email_match = EMAIL_PATTERN.search(text)
    phone_match = PHONE_PATTERN.search(text)
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    # A short first line without digits or '@' is usually the candidate's name
    name = first_line if first_line and len(first_line) <= 60 and "@" not in first_line \
        and not any(ch.isdigit() for ch in first_line) else None

    return {
        "name": name,
        "email": email_match.group() if email_match else None,
        "phone": phone_match.group().strip() if phone_match else None,
        "skills": extract_skills(text),
        "experience": extract_section(text, "experience"),
        "education": extract_section(text, "education"),
    }


def create_cv(
    db: Session,
    user: User,
    file_name: str,
    content: str,
    skills: Optional[List[str]] = None,
    experience: Optional[str] = None,
    education: Optional[str] = None,
) -> Cv:
    """
    Store a CV for a user. Explicit fields override the parsed ones.

    Raises:
        ValidationFailure: empty CV content
    """
    content = (content or "").strip()
    if not content:
        raise ValidationFailure("CV content is required", details={"field": "content"})

    parsed = parse_cv_text(content)
    cv = Cv(
        user_id=user.id,
        file_name=file_name,
        original_content=content,
        full_name=parsed["name"],
        email=parsed["email"],
        skills=[s.strip() for s in skills if s and s.strip()] if skills else parsed["skills"],
        experience=experience or parsed["experience"],
        education=education or parsed["education"],
        parsed_data={
            "phone": parsed["phone"],
            "processing_method": "rules",
        },
    )
    db.add(cv)
    db.commit()
    db.refresh(cv)

    logger.info(f"CV stored: cv_id={cv.id}, user_id={user.id}, skills={len(cv.skills or [])}")
    return cv


def get_latest_cv(db: Session, user_id: int) -> Optional[Cv]:
    return db.query(Cv).filter(Cv.user_id == user_id).order_by(Cv.created_at.desc(), Cv.id.desc()).first()


def require_latest_cv(db: Session, user_id: int) -> Cv:
    cv = get_latest_cv(db, user_id)
    if not cv:
        raise NotFound("No CV uploaded. Upload a CV first.", code=CV_NOT_FOUND)
    return cv
