"""
Model router for selecting appropriate models based on feature and plan.
"""
from applyai.core.config import OPENAI_MODEL

# Feature -> model mapping
MODEL_ROUTING = {
    "ats_score": "gpt-4o-mini",  # Structured extraction, cheap
    "job_match": "gpt-4o-mini",
    "cv_tailor": OPENAI_MODEL,
    "cover_letter": OPENAI_MODEL,
}

# Writing features get the larger model on the top plan
PREMIUM_MODEL = "gpt-4o"
PREMIUM_FEATURES = {"cv_tailor", "cover_letter"}


def get_model_for_feature(feature: str, plan: str = "free") -> str:
    """
    Get appropriate model for a feature.

    Args:
        feature: Feature name (e.g., "ats_score", "cover_letter")
        plan: User plan ("free" | "pro" | "elite")

    Returns:
        Model identifier string
    """
    if plan == "elite" and feature in PREMIUM_FEATURES:
        return PREMIUM_MODEL
    return MODEL_ROUTING.get(feature, OPENAI_MODEL)
