from fastapi import APIRouter

from authcore.main.config import config

router = APIRouter()


@router.get("/health/", response_model=dict)
@router.head("/health/", include_in_schema=False)
async def check_health() -> dict[str, str]:
    """Liveness probe. Does not touch Redis or the database."""
    return {"status": "ok", "service": config.app.PROJECT_NAME}
