"""
Account profile endpoints.
"""
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from subtracker.core.auth_dependency import get_current_user_id, get_db
from subtracker.schemas.profile import ProfileResponse, ProfileUpdate
from subtracker.services.profile_service import get_profile, update_profile

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse)
def read_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ProfileResponse.model_validate(get_profile(db, user_id))


@router.put("", response_model=ProfileResponse)
def write_profile(
    request: ProfileUpdate = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Update the reminder email address, name or default timezone."""
    return ProfileResponse.model_validate(update_profile(db, user_id, request))
