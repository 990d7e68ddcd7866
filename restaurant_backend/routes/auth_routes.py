from fastapi import APIRouter, Depends

from restaurant_backend.auth.dependencies import get_current_user
from restaurant_backend.auth.permissions import permissions_for
from restaurant_backend.models.user import User

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
        "permissions": sorted(permissions_for(current_user.role)),
    }
