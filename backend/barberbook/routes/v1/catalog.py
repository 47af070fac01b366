"""
Catalog routes - API v1

Endpoints:
    DELETE /barbers/{barber_id}      → Remove a barber without future bookings (owner)
    DELETE /services/{service_id}    → Soft-delete a service (owner)
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Response, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.services import get_catalog_service
from ...core.exceptions import DomainException
from ...services.catalog_service import CatalogService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog-v1"])


@router.delete("/barbers/{barber_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_barber(
    barber_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    try:
        await asyncio.to_thread(service.delete_barber, barber_id, user_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    try:
        await asyncio.to_thread(service.delete_service, service_id, user_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
