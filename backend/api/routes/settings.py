"""
Settings Routes - Persisted probe parameters
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from core.types import ProbeParameters
from ..dependencies import get_app_state, AppState

router = APIRouter(prefix="/settings", tags=["settings"])


class ProbeSettingsModel(BaseModel):
    """Partial probe parameters; omitted fields keep their stored value."""
    probe_diameter: Optional[float] = None
    x_spacing: Optional[float] = None
    y_spacing: Optional[float] = None
    z_spacing: Optional[float] = None
    x_offset: Optional[float] = None
    y_offset: Optional[float] = None
    z_offset: Optional[float] = None
    feed_rate: Optional[float] = None
    feed_rate_slow: Optional[float] = None
    retract_height: Optional[float] = None
    units: Optional[Literal["MM", "INCH"]] = None
    wcs: Optional[Literal["G54", "G55", "G56", "G57", "G58", "G59"]] = None


def resolve_parameters(state: AppState, overrides: Optional[ProbeSettingsModel]) -> ProbeParameters:
    """Stored parameters with request overrides applied; 422 on invalid values."""
    values = overrides.model_dump(exclude_none=True) if overrides else {}
    try:
        return state.settings.merged(values)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("")
def get_settings(state: AppState = Depends(get_app_state)):
    """Get stored probe parameters."""
    return state.settings.to_dict()


@router.put("")
def update_settings(req: ProbeSettingsModel, state: AppState = Depends(get_app_state)):
    """Update stored probe parameters."""
    state.settings.set(resolve_parameters(state, req))
    return state.settings.to_dict()
