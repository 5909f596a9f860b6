from fastapi import APIRouter, Depends

from backend.auth.dependencies import get_current_professional
from backend.models.profile import Profile

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(current_user: Profile = Depends(get_current_professional)):
    return {
        "user_id": current_user.user_id,
        "email": current_user.email,
        "full_name": current_user.full_name,
        "role": current_user.role,
    }
