from enum import StrEnum


class UserRole(StrEnum):
    HOST = "host"  # Instance owner
    ADMIN = "admin"  # May manage other users' credentials
    USER = "user"  # May only manage its own credentials
