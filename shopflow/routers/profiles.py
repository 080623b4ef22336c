# shopflow/routers/profiles.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from shopflow.core.auth import require_auth
from shopflow.database import get_session
from shopflow.models.profile import Profile
from shopflow.repositories.profile_repo import ProfileRepository
from shopflow.schemas.profile import ProfileRead, ProfileUpdate
from shopflow.services.profile_service import ProfileService

router = APIRouter(prefix="/profiles", tags=["Profiles"])

repo = ProfileRepository()
service = ProfileService(repo)


@router.get("/me", response_model=ProfileRead)
def read_me(current: Profile = Depends(require_auth)):
    """
    Return the caller's profile (created on first authenticated request).
    """
    return service.get_me(current)


@router.patch("/me", response_model=ProfileRead)
def update_me(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Update the caller's display name.
    """
    return service.update_me(session, current, payload)
