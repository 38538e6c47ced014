from typing import Annotated

from fastapi import Depends

from authcore.core.errors.exceptions import PermissionDeniedException
from authcore.user.auth.dependencies import get_current_user
from authcore.user.auth.permissions.enum import Permission
from authcore.user.auth.permissions.role_matrix import ROLE_PERMISSIONS
from authcore.user.dependencies import get_user_lookup
from authcore.user.models import User
from authcore.user.services import UserLookup


def has_permission(user: User, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(user.role, set())


async def get_access_token_owner(
    username: str,
    current_user: Annotated[User, Depends(get_current_user)],
    lookup: Annotated[UserLookup, Depends(get_user_lookup)],
) -> User:
    """
    Resolve the user whose access tokens the request targets.

    Callers always manage their own tokens. Managing another user's tokens
    needs MANAGE_USER_ACCESS_TOKENS, and the target user must exist.
    """
    if current_user.username == username:
        if not has_permission(current_user, Permission.MANAGE_OWN_ACCESS_TOKENS):
            raise PermissionDeniedException("Permission denied")
        return current_user

    if not has_permission(current_user, Permission.MANAGE_USER_ACCESS_TOKENS):
        raise PermissionDeniedException(
            "Permission denied", {"user_id": current_user.id, "target": username}
        )

    return await lookup.get_by_username(username)
