from typing import Annotated

from fastapi import APIRouter, Depends, Response

from authcore.core.schemas import SuccessResponse
from authcore.user.auth.cookies import SessionCookieManager, get_session_cookie_manager
from authcore.user.auth.dependencies import get_current_user
from authcore.user.auth.schemas import SignInModel
from authcore.user.auth.usecases.signin import SignInUseCase, get_signin_use_case
from authcore.user.models import User
from authcore.user.schemas import UserProfileViewModel

router = APIRouter()


@router.post("/signin", response_model=UserProfileViewModel)
async def signin_user(
    signin_form_data: SignInModel,
    response: Response,
    use_case: Annotated[SignInUseCase, Depends(get_signin_use_case)],
) -> UserProfileViewModel:
    """
    Authenticate user and set the session cookies.
    """
    return await use_case.execute(data=signin_form_data, response=response)


@router.post("/signout", response_model=SuccessResponse)
async def signout_user(
    response: Response,
    cookie_manager: Annotated[
        SessionCookieManager, Depends(get_session_cookie_manager)
    ],
) -> SuccessResponse:
    """
    Expire the session cookies. Succeeds without a session too.
    """
    cookie_manager.terminate_session(response)
    return SuccessResponse(success=True)


@router.get("/me", response_model=UserProfileViewModel)
async def get_authenticated_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserProfileViewModel:
    """
    Returns the current user's information.
    """
    return UserProfileViewModel.model_validate(current_user)
