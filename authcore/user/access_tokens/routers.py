from typing import Annotated

from fastapi import APIRouter, Depends

from authcore.core.schemas import SuccessResponse
from authcore.user.access_tokens.registry import (
    PersonalAccessTokenRegistry,
    get_access_token_registry,
)
from authcore.user.access_tokens.schemas import (
    CreateUserAccessTokenModel,
    ListUserAccessTokensResponse,
    PruneUserAccessTokensResponse,
    UserAccessToken,
)
from authcore.user.auth.permissions.checker import get_access_token_owner
from authcore.user.models import User

router = APIRouter()


@router.get("", response_model=ListUserAccessTokensResponse)
async def list_user_access_tokens(
    owner: Annotated[User, Depends(get_access_token_owner)],
    registry: Annotated[PersonalAccessTokenRegistry, Depends(get_access_token_registry)],
) -> ListUserAccessTokensResponse:
    """
    Returns the live personal access tokens of a user, oldest first.
    """
    tokens = await registry.list_tokens(owner.id)
    return ListUserAccessTokensResponse(access_tokens=tokens)


@router.post("", status_code=201, response_model=UserAccessToken)
async def create_user_access_token(
    data: CreateUserAccessTokenModel,
    owner: Annotated[User, Depends(get_access_token_owner)],
    registry: Annotated[PersonalAccessTokenRegistry, Depends(get_access_token_registry)],
) -> UserAccessToken:
    """
    Issues a personal access token for a user and stores it.
    """
    return await registry.create(owner, data.description, expires_at=data.expires_at)


@router.post("/prune", response_model=PruneUserAccessTokensResponse)
async def prune_user_access_tokens(
    owner: Annotated[User, Depends(get_access_token_owner)],
    registry: Annotated[PersonalAccessTokenRegistry, Depends(get_access_token_registry)],
) -> PruneUserAccessTokensResponse:
    """
    Deletes stored tokens that are expired or no longer verify.
    """
    removed = await registry.prune(owner.id)
    return PruneUserAccessTokensResponse(removed=removed)


@router.delete("/{access_token}", response_model=SuccessResponse)
async def delete_user_access_token(
    access_token: str,
    owner: Annotated[User, Depends(get_access_token_owner)],
    registry: Annotated[PersonalAccessTokenRegistry, Depends(get_access_token_registry)],
) -> SuccessResponse:
    await registry.revoke(owner.id, access_token)
    return SuccessResponse(success=True)
