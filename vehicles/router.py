"""
Vehicle REST endpoints.

``router`` is mounted under both ``/vehicles`` and ``/api/vehicles``;
``reseed_router`` carries ``POST /api/init``.
"""

import logging
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import Environment, Settings
from errors.exceptions import unauthorized
from vehicles.models import ReseedResult, Vehicle, VehicleCreate, VehicleUpdate
from vehicles.seed_data import SEED_VEHICLES
from vehicles.service import VehicleService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["vehicles"])
reseed_router = APIRouter(tags=["admin"])

bearer_scheme = HTTPBearer(auto_error=False)


def get_vehicle_service(request: Request) -> VehicleService:
    return request.app.state.vehicle_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def require_init_token(
    settings: Settings = Depends(get_app_settings),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """
    Guard the reseed endpoint in production.

    The bearer token must equal INIT_API_TOKEN, compared in constant time.
    With no token configured, reseeding is refused in production. Other
    environments skip the check.
    """
    if settings.environment != Environment.PRODUCTION:
        return

    if not settings.init_api_token:
        logger.warning("Reseed refused: INIT_API_TOKEN is not configured")
        raise unauthorized("Reseeding is disabled")

    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode("utf-8"),
        settings.init_api_token.encode("utf-8"),
    ):
        logger.warning("Reseed refused: missing or invalid bearer token")
        raise unauthorized("Invalid or missing bearer token")


@router.get("", response_model=List[Vehicle])
async def list_vehicles(service: VehicleService = Depends(get_vehicle_service)):
    """Return every vehicle, sorted by name."""
    return await service.list_all()


@router.get("/{vehicle_id}", response_model=Vehicle)
async def get_vehicle(vehicle_id: str, service: VehicleService = Depends(get_vehicle_service)):
    return await service.get_by_id(vehicle_id)


@router.post("", response_model=Vehicle, status_code=201)
async def create_vehicle(
    payload: VehicleCreate,
    service: VehicleService = Depends(get_vehicle_service),
):
    """Create a vehicle. Subscribers are notified through the change feed."""
    return await service.insert(payload.to_document())


@router.put("/{vehicle_id}", response_model=Vehicle)
async def update_vehicle(
    vehicle_id: str,
    payload: VehicleUpdate,
    service: VehicleService = Depends(get_vehicle_service),
):
    """Apply a partial update; the merged vehicle must still be valid."""
    return await service.update_by_id(vehicle_id, payload.to_changes())


@reseed_router.post(
    "/api/init",
    response_model=ReseedResult,
    dependencies=[Depends(require_init_token)],
)
async def reseed_vehicles(service: VehicleService = Depends(get_vehicle_service)):
    """Replace the whole collection with the fixed sample fleet."""
    count = await service.bulk_replace(SEED_VEHICLES)
    return ReseedResult(message="Database initialized with sample data", count=count)
