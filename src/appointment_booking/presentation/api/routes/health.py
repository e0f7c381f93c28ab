"""Health check endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .... import __version__
from ....domain.exceptions import StorageUnavailableError
from ....infrastructure.logging import SERVICE_NAME, get_logger
from ....infrastructure.services import ServiceFactory, get_service_factory

router = APIRouter()

logger = get_logger(__name__)


@router.get("/health")
async def health_check(factory: ServiceFactory = Depends(get_service_factory)):
    """Health check endpoint; 503 when storage does not answer."""
    try:
        await factory.check_storage()
    except (StorageUnavailableError, OSError, RuntimeError) as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME},
        )
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Appointment Booking Engine API", "version": __version__}
