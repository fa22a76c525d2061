from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from crm_access.access.api import router as access_router
from crm_access.access.permissions import permission_resolver
from crm_access.access.roles import Feature, resolve_role
from crm_access.core.auth import AuthUser, get_current_user
from crm_access.core.config import get_settings
from crm_access.metrics import generate_metrics_payload, metrics_content_type


router = APIRouter()
router.include_router(access_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str]:
    return {
        "sub": user.sub,
        "role": user.role,
        "resolved_role": resolve_role(user.role).value,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if not permission_resolver.has_permission(user.role, Feature.SETTINGS):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Missing permission: {Feature.SETTINGS.value}")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
