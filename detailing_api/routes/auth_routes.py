from fastapi import APIRouter, Depends

from detailing_api.api.responses import success_body
from detailing_api.auth.dependencies import get_current_user, is_admin
from detailing_api.models.user import UserProfile

router = APIRouter(tags=['auth'])


@router.get('/user')
def get_user(user: UserProfile = Depends(get_current_user)):
    return success_body({
        'id': user.id,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'phone': user.phone,
        'role': user.role,
        'is_admin': is_admin(user),
    })
