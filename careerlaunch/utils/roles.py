from fastapi import Depends

from ..constants import ROLE_PLATFORM_ADMIN, ROLE_RECRUITER, ROLE_STUDENT
from .dependencies import get_current_user
from .error_handlers import ForbiddenError


def _role_required(*required_roles: str):
    label = " or ".join(r.replace("_", " ") for r in required_roles)

    def check_role(user=Depends(get_current_user)):
        if user.get("role") not in required_roles:
            raise ForbiddenError(f"{label[:1].upper()}{label[1:]} access only")
        return user
    return check_role


student_only = _role_required(ROLE_STUDENT)
recruiter_only = _role_required(ROLE_RECRUITER)
admin_only = _role_required(ROLE_PLATFORM_ADMIN)
staff_only = _role_required(ROLE_RECRUITER, ROLE_PLATFORM_ADMIN)
