"""
Connection Routes - Connect/disconnect and status
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_app_state, AppState

router = APIRouter(tags=["connection"])


class ConnectRequest(BaseModel):
    port: str


@router.get("/ports")
def get_ports():
    """List available serial ports."""
    from core.serial_transport import SerialTransport
    return {"ports": SerialTransport.list_ports()}


@router.get("/status")
def get_status(state: AppState = Depends(get_app_state)):
    """Get current connection status, machine position and probe state."""
    return state.get_status()


@router.get("/history")
def get_history(limit: int = 50, state: AppState = Depends(get_app_state)):
    """Get recent command history."""
    return {"history": state.get_command_history(limit)}


@router.post("/connect")
def connect(req: ConnectRequest, state: AppState = Depends(get_app_state)):
    """Connect to the machine controller."""
    success = state.connect(req.port)
    return {"success": success, "message": "Connected" if success else "Connection failed"}


@router.post("/disconnect")
def disconnect(state: AppState = Depends(get_app_state)):
    """Disconnect from the machine controller."""
    state.disconnect()
    return {"success": True}
