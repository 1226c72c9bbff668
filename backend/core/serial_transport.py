"""
Serial Transport - Single responsibility: serial communication with a GRBL controller

Thread-safe: Uses lock to prevent concurrent access from the poller and API requests.
"""

import serial
import serial.tools.list_ports
import time
import threading
from typing import Optional
from dataclasses import dataclass
from .logger import log_serial, log_critical, log_ok


BAUD_RATE = 115200
DEFAULT_TIMEOUT = 2


@dataclass
class SerialConfig:
    baud_rate: int = BAUD_RATE
    timeout: float = DEFAULT_TIMEOUT
    connect_delay: float = 2.0
    response_timeout: float = 30.0  # probe moves can take a while before 'ok'


class SerialTransport:
    """
    Handles raw serial communication with the controller.

    Thread-safe: All send/read operations are protected by a lock.
    This prevents a status poll from interleaving with a command in flight.
    """

    def __init__(self, config: Optional[SerialConfig] = None):
        self.config = config or SerialConfig()
        self._serial: Optional[serial.Serial] = None
        self._connected = False
        self._lock = threading.Lock()

    @staticmethod
    def list_ports() -> list[str]:
        """List available serial ports"""
        ports = serial.tools.list_ports.comports()
        return [port.device for port in ports]

    def connect(self, port: str) -> bool:
        """Connect to serial port"""
        try:
            self._serial = serial.Serial(
                port,
                self.config.baud_rate,
                timeout=self.config.timeout
            )
            # Wake GRBL, then drop the welcome banner
            self._serial.write(b"\r\n\r\n")
            time.sleep(self.config.connect_delay)
            self._serial.reset_input_buffer()
            self._connected = True
            log_ok(f"Connected to {port} @ {self.config.baud_rate}")
            return True
        except serial.SerialException as e:
            self._connected = False
            raise ConnectionError(f"Failed to connect: {e}") from e

    def disconnect(self) -> None:
        """Disconnect from serial port"""
        if self._serial:
            self._serial.close()
            self._serial = None
        self._connected = False

    def send(self, data: str) -> str:
        """
        Send a line and wait for its 'ok' (or error/alarm) response.

        Thread-safe: Acquires lock before sending to prevent interleaved commands.
        """
        if not self._serial or not self._connected:
            raise ConnectionError("Not connected")

        with self._lock:
            log_serial(">>>", data)
            try:
                self._serial.write(f"{data}\n".encode())
            except serial.SerialException as e:
                raise self._link_lost("Write", e) from e
            return self._wait_for_response()

    def query_status(self) -> str:
        """
        Request a real-time status report.

        '?' is not line-terminated and is not acknowledged with 'ok';
        GRBL answers with a single '<...>' line.
        """
        if not self._serial or not self._connected:
            raise ConnectionError("Not connected")

        with self._lock:
            try:
                self._serial.write(b"?")
            except serial.SerialException as e:
                raise self._link_lost("Write", e) from e
            return self._wait_for(lambda line: line.startswith("<"), self.config.timeout)

    def _wait_for_response(self) -> str:
        """
        Collect ALL response lines until 'ok', 'error:' or 'ALARM:' is found.

        This handles probe results where data comes before 'ok':
          [PRB:0.000,0.000,-3.000:1]
          ok
        """
        return self._wait_for(
            lambda line: line == "ok" or line.startswith("error") or line.startswith("ALARM"),
            self.config.response_timeout,
        )

    def _wait_for(self, is_terminal, timeout: float) -> str:
        start = time.time()
        lines = []
        try:
            while (time.time() - start) < timeout:
                response = self._serial.readline().decode(errors="replace").strip()
                if response:
                    lines.append(response)
                    log_serial("<<<", response)
                    if is_terminal(response):
                        return '\n'.join(lines)
                else:
                    time.sleep(0.05)
            # Timeout - clear buffer and raise
            self._serial.reset_input_buffer()
        except serial.SerialException as e:
            raise self._link_lost("Read", e) from e
        log_critical(f"Timeout waiting for response after {timeout}s")
        raise TimeoutError(f"Timeout waiting for response after {timeout}s")

    def _link_lost(self, operation: str, error: Exception) -> ConnectionError:
        """Mark the port dead; the caller raises the returned error."""
        self._connected = False
        log_critical(f"{operation} failed, serial link lost: {error}")
        return ConnectionError(f"{operation} failed: {error}")

    @property
    def is_connected(self) -> bool:
        return self._connected
