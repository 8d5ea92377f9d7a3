"""
Flat key-value configuration persisted as JSON.
"""

import json
import logging
import os
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

SECRET_MARKERS = ("password", "apikey", "token")


class ConfigStore:
    """String settings such as `intervals:apikey`, kept in one JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._config: Dict[str, str] = self._load()

    def get(self, key: str) -> Optional[str]:
        """Return a value, treating empty strings as unset."""
        return self._config.get(key) or None

    def set(self, key: str, value: str) -> bool:
        """Set a value and save; returns False if the file could not be written."""
        self._config[key] = value
        return self._save()

    def unset(self, key: str) -> bool:
        if self._config.pop(key, None) is None:
            return True
        return self._save()

    def items(self, masked: bool = True) -> List[Tuple[str, str]]:
        """All settings, with secret-looking values hidden unless masked is False."""
        result = []
        for key, value in self._config.items():
            if masked and any(marker in key.lower() for marker in SECRET_MARKERS):
                value = "****"
            result.append((key, value))
        return result

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.path, "r") as file:
                data = json.load(file)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable config file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items() if value is not None}

    def _save(self) -> bool:
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w") as file:
                json.dump(self._config, file, indent=4)
                file.write("\n")
        except OSError as e:
            logger.error(f"Failed to save config to {self.path}: {e}")
            return False
        return True
