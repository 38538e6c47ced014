from enum import StrEnum


class Permission(StrEnum):
    # Personal access tokens of the caller itself
    MANAGE_OWN_ACCESS_TOKENS = "manage_own_access_tokens"

    # Personal access tokens of any other user
    MANAGE_USER_ACCESS_TOKENS = "manage_user_access_tokens"
