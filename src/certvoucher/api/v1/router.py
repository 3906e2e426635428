"""Primary API router definition."""

from fastapi import APIRouter

from . import maintenance, voucher_codes, voucher_requests

api_router = APIRouter()

api_router.include_router(voucher_requests.router)
api_router.include_router(voucher_codes.router)
api_router.include_router(maintenance.router)


@api_router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Basic health probe endpoint."""
    return {"status": "ok"}
