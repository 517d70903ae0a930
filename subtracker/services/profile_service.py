"""
Account profile read and update.
"""
import logging
from typing import Optional

from fastapi import status
from sqlalchemy.orm import Session

from subtracker.core.errors import ErrorCode, ServiceError
from subtracker.db.models.profile import Profile
from subtracker.schemas.profile import ProfileUpdate
from subtracker.services.audit_service import record_audit

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("email", "first_name", "last_name", "timezone")


def find_profile(db: Session, user_id: str) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.id == user_id).first()


def get_profile(db: Session, user_id: str) -> Profile:
    """The stored profile, or an unsaved one with UTC defaults when the user has none yet."""
    return find_profile(db, user_id) or Profile(id=user_id, timezone="UTC")


def update_profile(db: Session, user_id: str, request: ProfileUpdate) -> Profile:
    """
    Create or update the user's profile.

    Raises:
        ServiceError 400: timezone explicitly set to null
    """
    changes = request.model_dump(exclude_unset=True)
    if "timezone" in changes and changes["timezone"] is None:
        raise ServiceError(ErrorCode.VALIDATION_ERROR, "timezone cannot be null", status_code=status.HTTP_400_BAD_REQUEST)

    profile = find_profile(db, user_id)
    if profile is None:
        profile = Profile(id=user_id, timezone="UTC")
        db.add(profile)
        before = None
    else:
        before = {name: getattr(profile, name) for name in PROFILE_FIELDS}

    for key, value in changes.items():
        setattr(profile, key, value)

    db.commit()
    db.refresh(profile)

    record_audit(db, user_id, "update_profile", "profile", user_id, {
        "before": before,
        "after": {name: getattr(profile, name) for name in PROFILE_FIELDS},
    })
    logger.info(f"Profile updated: user_id={user_id}, fields={sorted(changes)}")
    return profile
