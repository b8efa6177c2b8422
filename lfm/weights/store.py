"""
Weight Store
=============

Loading and runtime management of engine weights with YAML fallback.

The WeightStore handles:
1. Loading weights from YAML (default)
2. Falling back to built-in defaults when the YAML is missing or invalid
3. Runtime overrides (without restart)
4. Reloading from disk

Architecture:
    YAML (default) <- WeightStore -> Runtime override
                          |
                     Cached EngineWeights
"""

import structlog
import yaml
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from lfm.weights.config import EngineWeights, WeightCategory

log = structlog.get_logger()


class WeightStore:
    """
    Central storage for all engine weights.

    Loading priority:
    1. Runtime override (if applied)
    2. YAML config
    3. Built-in defaults

    Example:
        >>> store = WeightStore()
        >>> weights = store.get_weights()
        >>> weights.similarity.case_type
        0.25

        >>> store.apply_override("calibration", {"recalibration_mode": "floor"})
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize WeightStore.

        Args:
            config_path: Path to the YAML file. If None, uses the packaged default.
        """
        self.config_path = Path(config_path) if config_path else self._get_default_config_path()
        self._cache: Optional[EngineWeights] = None

        log.info("WeightStore initialized", config_path=str(self.config_path))

    @staticmethod
    def _get_default_config_path() -> Path:
        """Default path of the packaged weights file."""
        return Path(__file__).parent / "config" / "weights.yaml"

    def _load_yaml_config(self) -> Dict[str, Any]:
        """Load raw configuration from YAML, empty dict on failure."""
        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            log.warning("Weights config not found, using defaults", path=str(self.config_path))
            return {}
        except yaml.YAMLError as e:
            log.error("Error parsing weights config", path=str(self.config_path), error=str(e))
            return {}

        if not isinstance(data, dict):
            log.error("Weights config is not a mapping, using defaults", path=str(self.config_path))
            return {}

        log.debug("Loaded weights from YAML", path=str(self.config_path))
        return data

    def _parse_config(self, data: Dict[str, Any]) -> EngineWeights:
        """Convert YAML data into EngineWeights, defaults on validation error."""
        try:
            return EngineWeights.model_validate(data)
        except ValidationError as e:
            log.error("Invalid weights config, using defaults", errors=e.error_count(), detail=str(e))
            return EngineWeights()

    def get_weights(self) -> EngineWeights:
        """
        Get the current engine weights.

        Returns:
            EngineWeights (cached after first load)
        """
        if self._cache is None:
            self._cache = self._parse_config(self._load_yaml_config())
        return self._cache

    def reload(self) -> EngineWeights:
        """Discard cached weights and runtime overrides, then reload from YAML."""
        self._cache = None
        return self.get_weights()

    def apply_override(self, category: str, values: Dict[str, Any]) -> EngineWeights:
        """
        Override part of a section at runtime.

        The merged configuration is validated as a whole; an invalid override
        raises pydantic.ValidationError and leaves the current weights intact.

        Args:
            category: Section name (see WeightCategory)
            values: Fields to replace in that section

        Returns:
            Updated EngineWeights
        """
        section = WeightCategory(category).value
        current = self.get_weights().model_dump()
        current[section] = {**current[section], **values}
        current["updated_at"] = datetime.now().isoformat()

        updated = EngineWeights.model_validate(current)
        self._cache = updated

        log.info("Weights override applied", category=section, fields=sorted(values))
        return updated


_default_store: Optional[WeightStore] = None


def get_weight_store(config_path: Optional[Path] = None) -> WeightStore:
    """
    Get the process-wide default WeightStore.

    Args:
        config_path: Used only when the store is created on first call
    """
    global _default_store
    if _default_store is None:
        _default_store = WeightStore(config_path=config_path)
    return _default_store
