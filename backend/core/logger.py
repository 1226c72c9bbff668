"""
Structured logging for the touch probe controller.

Prefixes:
  ⚡ CRITICAL - Errors, aborted cycles
  ⚠️  WARN     - Warnings, ignored or unexpected events
  ✓  OK       - Success confirmations
  →  MOVE     - Motion commands
  ⌖  PROBE    - Probe commands and contacts
  ⇢  STATE    - State machine transitions
  ⬡  SERIAL   - Raw serial I/O
  📍 POS      - Position readings
  ℹ  INFO     - Connection and lifecycle notes
  🔄 CYCLE    - Probe cycle start and finish
"""

from enum import Enum
from typing import Optional
from datetime import datetime


class LogLevel(Enum):
    CRITICAL = "⚡ CRITICAL"
    WARN = "⚠️  WARN    "
    OK = "✓  OK      "
    MOVE = "→  MOVE    "
    PROBE = "⌖  PROBE   "
    STATE = "⇢  STATE   "
    SERIAL = "⬡  SERIAL  "
    POS = "📍 POS     "
    INFO = "ℹ  INFO    "
    CYCLE = "🔄 CYCLE   "


def log(level: LogLevel, message: str, data: Optional[dict] = None):
    """Log a message with structured prefix."""
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    prefix = level.value

    line = f"[{timestamp}] {prefix} | {message}"
    if data:
        line += f" | {data}"

    print(line)


# Convenience functions
def log_critical(msg: str, data: Optional[dict] = None):
    log(LogLevel.CRITICAL, msg, data)

def log_warn(msg: str, data: Optional[dict] = None):
    log(LogLevel.WARN, msg, data)

def log_ok(msg: str, data: Optional[dict] = None):
    log(LogLevel.OK, msg, data)

def log_move(msg: str, data: Optional[dict] = None):
    log(LogLevel.MOVE, msg, data)

def log_probe(msg: str, data: Optional[dict] = None):
    log(LogLevel.PROBE, msg, data)

def log_state(msg: str, data: Optional[dict] = None):
    log(LogLevel.STATE, msg, data)

def log_serial(direction: str, data: str):
    """Log serial I/O. direction is '>>>' (send) or '<<<' (recv)"""
    log(LogLevel.SERIAL, f"{direction} {data}")

def log_pos(msg: str, data: Optional[dict] = None):
    log(LogLevel.POS, msg, data)

def log_info(msg: str, data: Optional[dict] = None):
    log(LogLevel.INFO, msg, data)

def log_cycle(msg: str, data: Optional[dict] = None):
    log(LogLevel.CYCLE, msg, data)
