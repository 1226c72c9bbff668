"""
Events - State transition triggers shared by all probe workflows
"""

from enum import Enum, auto


class Event(Enum):
    """Domain-level triggers, decoupled from raw controller status"""

    # Caller started the cycle
    START = auto()

    # Probe reported contact
    PROBED = auto()

    # Controller went idle after a command
    IDLE = auto()
