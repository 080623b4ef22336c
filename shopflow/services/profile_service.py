# shopflow/services/profile_service.py
from sqlmodel import Session

from shopflow.core.auth import to_identity
from shopflow.core.policies import authorize
from shopflow.models.profile import Profile
from shopflow.repositories.profile_repo import ProfileRepository
from shopflow.schemas.profile import ProfileUpdate


class ProfileService:
    """
    Own-profile reads and edits, under the profiles policy.
    """

    def __init__(self, repo: ProfileRepository):
        self.repo = repo

    def get_me(self, current: Profile) -> Profile:
        authorize(to_identity(current), "profiles", "select", current)
        return current

    def update_me(
        self,
        session: Session,
        current: Profile,
        payload: ProfileUpdate,
    ) -> Profile:
        """
        Partial update; only `full_name` is editable.
        """
        authorize(to_identity(current), "profiles", "update", current)

        if payload.full_name is not None:
            current.full_name = payload.full_name

        return self.repo.update(session, current)
