from authcore.user.auth.permissions.enum import Permission
from authcore.user.enums import UserRole

ROLE_PERMISSIONS: dict[UserRole, set[Permission]] = {
    UserRole.HOST: {
        Permission.MANAGE_OWN_ACCESS_TOKENS,
        Permission.MANAGE_USER_ACCESS_TOKENS,
    },
    UserRole.ADMIN: {
        Permission.MANAGE_OWN_ACCESS_TOKENS,
        Permission.MANAGE_USER_ACCESS_TOKENS,
    },
    UserRole.USER: {
        Permission.MANAGE_OWN_ACCESS_TOKENS,
    },
}
