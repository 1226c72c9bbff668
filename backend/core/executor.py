"""
Command execution record.

Provides:
- CommandResult: Execution result with timestamp
- CommandHistory: Ordered, auditable log of everything sent to the controller
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List


@dataclass(frozen=True)
class CommandResult:
    """
    Result of sending one command.

    Immutable record for audit trail.
    """
    gcode: str
    response: str
    timestamp: datetime
    success: bool

    def to_dict(self) -> dict:
        return {
            "gcode": self.gcode,
            "response": self.response,
            "success": self.success,
            "timestamp": self.timestamp.isoformat(),
        }


class CommandHistory:
    """
    Ordered command history for debugging/audit.

    Bounded: oldest entries are dropped once max_entries is exceeded.
    """

    def __init__(self, max_entries: int = 1000):
        self._history: List[CommandResult] = []
        self._max_entries = max_entries

    def record(self, gcode: str, response: str, success: bool) -> CommandResult:
        """Append a result stamped with the current time."""
        result = CommandResult(
            gcode=gcode,
            response=response,
            timestamp=datetime.now(),
            success=success,
        )
        self._history.append(result)
        if len(self._history) > self._max_entries:
            del self._history[: len(self._history) - self._max_entries]
        return result

    def get_history(self, limit: int | None = None) -> List[CommandResult]:
        """
        Get execution history.

        Args:
            limit: Optional max number of recent entries to return.
        """
        if limit is None:
            return list(self._history)
        if limit <= 0:
            return []
        return list(self._history[-limit:])

    def clear_history(self) -> None:
        """Clear execution history."""
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)
