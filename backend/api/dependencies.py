"""
API Dependencies - Dependency injection for FastAPI

AppState owns the backend, the ProbeService and the background status poller.
Every call into the ProbeService (starting a cycle, delivering polled events)
goes through one lock, so the service sees a single dispatch source.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import threading

from core.logger import log_critical, log_info
from core.transport import MockTransport
from core.serial_transport import SerialTransport
from core.backend import GrblBackend
from core.settings_store import ProbeSettingsStore
from probe_service import ProbeService


@dataclass
class AppState:
    """
    Application state container.

    poll_interval=None disables the background poller; callers then drive
    event delivery with poll_once().
    """
    settings: ProbeSettingsStore = field(default_factory=ProbeSettingsStore)
    poll_interval: Optional[float] = 0.2
    reject_concurrent_start: bool = False
    backend: Optional[GrblBackend] = None
    service: Optional[ProbeService] = None
    _transport: Optional[Any] = None
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _poller: Optional[threading.Thread] = None
    _stop: threading.Event = field(default_factory=threading.Event)

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_connected

    def connect(self, port: str) -> bool:
        """Connect to the controller and initialize backend + service."""
        if self.backend is not None:
            self.disconnect()

        try:
            # Use mock for testing, real serial for production
            if port == "mock":
                self._transport = MockTransport()
            else:
                self._transport = SerialTransport()
                if not self._transport.connect(port):
                    return False
        except ConnectionError as e:
            log_critical(f"Connection error: {e}")
            self._transport = None
            return False

        self.backend = GrblBackend(self._transport)
        self.service = ProbeService(
            self.backend,
            reject_concurrent_start=self.reject_concurrent_start,
        )
        self._start_poller()
        return True

    def disconnect(self) -> None:
        """Disconnect from the controller; an active cycle is dropped."""
        self._stop_poller()
        with self._lock:
            if self.backend is not None:
                self.backend.disconnect()
            if self.service is not None:
                self.service.close()
        self._transport = None
        self.backend = None
        self.service = None

    def poll_once(self) -> None:
        """Deliver pending backend events to the service."""
        with self._lock:
            if self.backend is not None:
                self.backend.poll()

    def _start_poller(self) -> None:
        if self.poll_interval is None:
            return
        self._stop.clear()
        self._poller = threading.Thread(target=self._poll_loop, name="status-poller", daemon=True)
        self._poller.start()
        log_info(f"Status poller running every {self.poll_interval}s")

    def _stop_poller(self) -> None:
        if self._poller is None:
            return
        self._stop.set()
        self._poller.join(timeout=2.0)
        self._poller = None

    def _poll_loop(self) -> None:
        while not self._stop.wait(self.poll_interval):
            self.poll_guarded()

    def poll_guarded(self) -> bool:
        """poll_once() for the background thread: a failure is logged, never raised."""
        try:
            self.poll_once()
            return True
        except Exception as e:
            log_critical(f"Status poll failed: {e}")
            return False

    def get_status(self) -> Dict[str, Any]:
        """Get current status for API."""
        if self.service is None or self.backend is None:
            return {
                "connected": False,
                "ready": False,
                "position": None,
                "probe": None,
                "settings": self.settings.to_dict(),
            }

        with self._lock:
            return {
                "connected": self.is_connected,
                "ready": self.backend.is_ready(),
                "position": self.backend.current_position().to_dict(),
                "probe": self.service.get_status(),
                "settings": self.settings.to_dict(),
            }

    def get_command_history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent command history."""
        if self.backend is None:
            return []
        return [r.to_dict() for r in self.backend.history.get_history(limit)]


# Global instance
_app_state: Optional[AppState] = None


def get_app_state() -> AppState:
    """Get the global app state instance."""
    global _app_state
    if _app_state is None:
        _app_state = AppState()
    return _app_state


def require_service() -> ProbeService:
    """Get probe service, raising error if not connected."""
    from fastapi import HTTPException

    state = get_app_state()
    if not state.is_connected or state.service is None:
        raise HTTPException(status_code=400, detail="Not connected to controller")
    return state.service
