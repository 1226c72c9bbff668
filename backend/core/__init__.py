"""Core infrastructure layer - types, gcode, transports, backend, settings"""

from .backend import GrblBackend, MockBackend, CommandDeliveryError
from .serial_transport import SerialTransport
from .settings_store import ProbeSettingsStore

__all__ = [
    'GrblBackend', 'MockBackend', 'CommandDeliveryError',
    'SerialTransport', 'ProbeSettingsStore',
]
