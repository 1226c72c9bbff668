"""
Probe Routes - Start probe cycles and report their progress
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from core.logger import log_cycle
from probe_service import PreconditionError
from .settings import ProbeSettingsModel, resolve_parameters
from ..dependencies import get_app_state, require_service, AppState

router = APIRouter(prefix="/probe", tags=["probe"])


@router.post("/depth")
def start_depth_probe(
    req: Optional[ProbeSettingsModel] = None,
    state: AppState = Depends(get_app_state),
):
    """
    Start a Z depth probe from the current position.

    Body fields override the stored settings for this cycle only.
    """
    service = require_service()
    params = resolve_parameters(state, req)

    with state.lock:
        context = service.create_context(params)
        try:
            service.start_depth_probe(context)
        except PreconditionError as e:
            raise HTTPException(status_code=409, detail=str(e))
        log_cycle("Depth probe requested via API")
        return service.get_status()


@router.post("/outside-corner")
def start_outside_corner_probe(
    req: Optional[ProbeSettingsModel] = None,
    state: AppState = Depends(get_app_state),
):
    """
    Start an outside corner probe (Y then X) from the current position.

    Body fields override the stored settings for this cycle only.
    """
    service = require_service()
    params = resolve_parameters(state, req)

    with state.lock:
        context = service.create_context(params)
        try:
            service.start_outside_corner_probe(context)
        except PreconditionError as e:
            raise HTTPException(status_code=409, detail=str(e))
        log_cycle("Outside corner probe requested via API")
        return service.get_status()


@router.get("/status")
def probe_status(state: AppState = Depends(get_app_state)):
    """Active cycle, current state, last result and last error."""
    service = require_service()
    with state.lock:
        return service.get_status()
