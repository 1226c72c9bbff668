"""
Probe Settings Store - Single responsibility: persist and load probe parameters
"""

import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .logger import log_warn
from .types import ProbeParameters, DEFAULT_PROBE_PARAMETERS


class ProbeSettingsStore:
    """Persists the last-used probe parameters to a JSON file"""

    def __init__(self, file_path: Optional[Path] = None):
        self.file_path = file_path or Path(__file__).parent.parent / "probe_settings.json"
        self._params = self._load()

    def _load(self) -> ProbeParameters:
        """Load parameters from file, falling back to defaults"""
        if self.file_path.exists():
            try:
                with open(self.file_path, 'r') as f:
                    return ProbeParameters.from_dict(json.load(f))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                log_warn(f"Ignoring unreadable probe settings {self.file_path}: {e}")
        return DEFAULT_PROBE_PARAMETERS

    def _save(self) -> None:
        """Save parameters to file"""
        with open(self.file_path, 'w') as f:
            json.dump(self._params.to_dict(), f, indent=2)

    def get(self) -> ProbeParameters:
        """Get current parameters"""
        return self._params

    def set(self, params: ProbeParameters) -> None:
        """Replace all parameters"""
        self._params = params
        self._save()

    def update(self, **changes: Any) -> ProbeParameters:
        """Change some parameters; unknown keys raise TypeError"""
        self._params = replace(self._params, **changes)
        self._save()
        return self._params

    def merged(self, overrides: Mapping[str, Any]) -> ProbeParameters:
        """Parameters with one-off overrides applied; nothing is persisted"""
        values = self._params.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ProbeParameters.from_dict(values)

    def to_dict(self) -> dict:
        """Export parameters as dict (for API)"""
        return self._params.to_dict()
