from uuid import UUID

from app.core.constants import UserRole
from app.core.exceptions import Forbidden, NotFound
from app.db.models import User

def require_hospital(user: User) -> UUID:
    if not user.hospital_id:
        raise Forbidden("User is not associated with a hospital.")
    return user.hospital_id

def ensure_same_hospital(user: User, hospital_id: UUID | None, detail: str) -> None:
    # Records of other hospitals are reported as missing rather than forbidden
    if user.role == UserRole.SUPER_ADMIN.value:
        return
    if hospital_id is None or hospital_id != user.hospital_id:
        raise NotFound(detail)
