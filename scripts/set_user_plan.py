"""
Create or update a user on a given plan and print a bearer token for them.
Run: python -m scripts.set_user_plan someone@example.com --plan pro
"""
import argparse
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from applyai.core.plan_limits import PLAN_LIMITS
from applyai.core.security import create_access_token
from applyai.db.models.user import User
import logging

logger = logging.getLogger(__name__)


def set_user_plan(db, email: str, plan: str, full_name: str = None) -> User:
    """Create the user if missing, then set their plan. The new limits apply from the next UTC day."""
    if plan not in PLAN_LIMITS:
        raise ValueError(f"Unknown plan '{plan}'. Choose from: {', '.join(PLAN_LIMITS)}")

    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user:
        logger.info(f"Creating new user: {email}")
        user = User(email=email, full_name=full_name or email.split("@")[0])
        db.add(user)
    else:
        logger.info(f"Found existing user: {email} (ID: {user.id})")

    user.plan = plan
    db.commit()
    db.refresh(user)
    logger.info(f"User {email} is now on the {plan} plan")
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("email")
    parser.add_argument("--plan", default="free", choices=sorted(PLAN_LIMITS))
    parser.add_argument("--name", default=None, help="Full name for a new user")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    from applyai.db.init_db import init_db
    from applyai.db.session import SessionLocal

    init_db()
    db = SessionLocal()
    try:
        user = set_user_plan(db, args.email, args.plan, args.name)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating user: {e}", exc_info=True)
        return 1
    finally:
        db.close()

    print(f"\n[SUCCESS] {user.email} (ID {user.id}) is on the {user.plan} plan")
    print(f"   Token: {create_access_token({'sub': user.email})}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
