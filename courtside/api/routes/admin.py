"""Admin route handlers (ledger voids, escalated corrections, localities)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.api.auth_dependencies import require_admin
from courtside.api.routes import service_error_to_http
from courtside.database.db import get_db_session
from courtside.models.schemas import (
    CreateLocalityRequest,
    LocalityResponse,
    ResolveCorrectionRequest,
    VoidPointMovementRequest,
)
from courtside.services import correction_service, points_service, ranking_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/admin/point-movements/{movement_id}/void")
async def void_point_movement(
    movement_id: int,
    payload: VoidPointMovementRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Void a ledger entry. A second void of the same entry is a 409."""
    try:
        movement = await points_service.void_point_movement(
            session, movement_id, payload.reason, user["id"]
        )
        return points_service.movement_to_dict(movement)
    except Exception as e:
        raise service_error_to_http(e, "voiding point movement")


@router.get("/api/admin/corrections")
async def list_corrections(
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Correction requests addressed to admins or escalated to them."""
    try:
        return await correction_service.list_admin_corrections(session)
    except Exception as e:
        raise service_error_to_http(e, "listing corrections")


@router.post("/api/admin/corrections/{correction_id}/resolve")
async def resolve_correction(
    correction_id: int,
    payload: ResolveCorrectionRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Close a correction request as RESOLVED or REJECTED."""
    try:
        correction = await correction_service.resolve_correction_request(
            session, correction_id, payload.status, payload.response
        )
        return correction_service.correction_to_dict(correction)
    except Exception as e:
        raise service_error_to_http(e, "resolving correction")


@router.post("/api/admin/localities", response_model=LocalityResponse, status_code=201)
async def create_locality(
    payload: CreateLocalityRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Register a locality players can be ranked within."""
    try:
        locality = await ranking_service.create_locality(session, payload.name, payload.province)
        return ranking_service.locality_to_dict(locality)
    except Exception as e:
        raise service_error_to_http(e, "creating locality")
