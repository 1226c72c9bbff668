"""
Touch Probe Controller - Main Entry Point

Run with: uvicorn main:app --reload --port 8000
"""

import sys
from pathlib import Path

# Add backend to path for imports
backend_path = Path(__file__).parent
sys.path.insert(0, str(backend_path))

import uvicorn
from fastapi import FastAPI

from api.app import create_app
from api.dependencies import get_app_state


app: FastAPI = create_app()


# === Startup/Shutdown Events ===

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    print("=" * 50)
    print("  Touch Probe Controller v1.0")
    print("=" * 50)
    print()
    print("Cycles:")
    print("  ✓ Depth probe (Z)")
    print("  ✓ Outside corner probe (X/Y)")
    print()

    params = get_app_state().settings.get()
    print("Loaded Settings:")
    print(f"  Probe diameter: {params.probe_diameter}")
    print(f"  Spacing X/Y/Z: {params.x_spacing} / {params.y_spacing} / {params.z_spacing}")
    print(f"  Feed fast/slow: {params.feed_rate} / {params.feed_rate_slow}")
    print(f"  Units: {params.units.name}  Register: {params.wcs.name}")
    print()
    print("API ready at http://localhost:8000")
    print("Docs at http://localhost:8000/docs")
    print()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    state = get_app_state()
    if state.is_connected:
        print("[SHUTDOWN] Disconnecting from controller...")
        state.disconnect()


# === Health Check ===

@app.get("/health")
def health_check():
    """Health check endpoint"""
    state = get_app_state()
    service = state.service
    return {
        "status": "ok",
        "version": "1.0.0",
        "connected": state.is_connected,
        "cycle_active": service.is_cycle_active() if service else False,
    }


# === Run directly ===

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
