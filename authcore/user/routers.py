from fastapi import APIRouter

from authcore.user.access_tokens.routers import router as access_tokens_router

router = APIRouter()

router.include_router(access_tokens_router, prefix="/{username}/access-tokens")
