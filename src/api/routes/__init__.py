from fastapi import APIRouter

from .orders import router as orders_router
from .providers import router as providers_router
from .health import router as health_router

api_router = APIRouter()

api_router.include_router(
    orders_router,
    prefix="/orders",
    tags=["Orders"],
)

api_router.include_router(
    providers_router,
    prefix="/providers",
    tags=["Providers"],
)

api_router.include_router(
    health_router,
    prefix="/health",
    tags=["Health"],
)
