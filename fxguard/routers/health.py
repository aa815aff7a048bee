from fastapi import APIRouter, Depends

from fxguard.services.registry import ServiceRegistry, get_services

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness probe")
async def health(services: ServiceRegistry = Depends(get_services)):
    return {"status": "ok", "version": services.settings.version}
