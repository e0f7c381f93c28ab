"""Organization and resource catalog endpoints."""

from fastapi import APIRouter, Depends, status

from ....domain.value_objects.actor import Actor
from ....infrastructure.services import ServiceFactory, get_service_factory
from ..middleware.auth import get_current_actor, get_current_operator
from ..schemas.appointment_schemas import (
    OrganizationRequest,
    OrganizationResponse,
    ResourceRequest,
    ResourceResponse,
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_organization(
    request: OrganizationRequest,
    actor: Actor = Depends(get_current_actor),
    factory: ServiceFactory = Depends(get_service_factory)
) -> OrganizationResponse:
    """Register an organization with its business hours and provider roster."""
    organization = await factory.get_appointment_service().create_organization(
        request.name,
        [slot.to_dict() for slot in request.business_hours],
        provider_ids=request.provider_ids,
    )
    return OrganizationResponse.from_entity(organization)


@router.post("/resources", status_code=status.HTTP_201_CREATED)
async def create_resource(
    request: ResourceRequest,
    operator: Actor = Depends(get_current_operator),
    factory: ServiceFactory = Depends(get_service_factory)
) -> ResourceResponse:
    """Create a bookable resource for the operator's organization."""
    resource = await factory.get_appointment_service().create_resource(
        operator.organization_id,
        request.name,
        request.capacity,
    )
    return ResourceResponse.from_entity(resource)
