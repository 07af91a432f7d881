from fastapi import APIRouter, Depends

from salonhub.api.deps import require_two_factor
from salonhub.models.user import User
from salonhub.schemas.user import UserOut

router = APIRouter(prefix="/users", tags=["users"])

# profile data counts as sensitive: gated behind 2FA when the user enabled it
@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(require_two_factor)):
    return current_user
