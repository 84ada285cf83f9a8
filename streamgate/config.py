"""Engine configuration - engine.yaml plus a few environment overrides.

Lookup order for the file: explicit path, ``STREAMGATE_CONFIG``, then
``config/engine.yaml`` relative to the working directory.

``STREAMGATE_STORE_URL`` and ``STREAMGATE_STORE_TIMEOUT`` override the
``store`` section so one file can serve several deployments.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from streamgate.errors import ConfigurationError
from streamgate.logging_config import get_logger
from streamgate.models import ContentMetadata, EngineSettings, PlanDefinition

__all__ = ["Config", "ConfigurationError", "get_config", "load_settings", "reload_config", "reset_config"]

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config/engine.yaml")
CONFIG_ENV_VAR = "STREAMGATE_CONFIG"

# env var -> (section, key)
_ENV_OVERRIDES = {
    "STREAMGATE_STORE_URL": ("store", "base_url"),
    "STREAMGATE_STORE_TIMEOUT": ("store", "timeout_seconds"),
}


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            f"Create {DEFAULT_CONFIG_PATH} or point {CONFIG_ENV_VAR} at an engine.yaml"
        )
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML configuration {path}: {e}") from e

    if not raw:
        raise ConfigurationError(f"Configuration file is empty: {path}")
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")
    return raw


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    for env_var, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            raw.setdefault(section, {})[key] = value
            logger.debug("config_env_override", env_var=env_var, section=section, key=key)
    return raw


def load_settings(path: Path) -> EngineSettings:
    """Read, override and validate one engine.yaml.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    raw = _apply_env_overrides(_read_yaml(path))
    try:
        return EngineSettings(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed for {path}:\n{e}") from e


class Config:
    """Loaded engine settings and plan lookups.

    Args:
        config_path: path to engine.yaml; falls back to ``STREAMGATE_CONFIG``
            and then ``config/engine.yaml``
    """

    def __init__(self, config_path: Optional[str] = None):
        if config_path:
            self._config_path = Path(config_path)
        else:
            self._config_path = Path(os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
        self._settings = load_settings(self._config_path)
        self._plans = {plan.id: plan for plan in self._settings.plans}
        logger.info("config_loaded", path=str(self._config_path), plans=len(self._plans))

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def config_path(self) -> Path:
        return self._config_path

    def get_plan_by_id(self, plan_id: str) -> Optional[PlanDefinition]:
        return self._plans.get(plan_id)

    def plan_content(self, plan_id: str) -> Optional[ContentMetadata]:
        """A configured plan as purchasable content, or None if no such plan."""
        plan = self.get_plan_by_id(plan_id)
        return ContentMetadata.from_plan(plan) if plan is not None else None

    def reload(self) -> None:
        """Re-read the file; the previous settings stay in place if it is now invalid."""
        settings = load_settings(self._config_path)
        self._settings = settings
        self._plans = {plan.id: plan for plan in settings.plans}


_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Process-wide configuration, loaded on first use.

    ``config_path`` only matters on the first call.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reload_config() -> None:
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    else:
        _config_instance.reload()


def reset_config() -> None:
    """Forget the process-wide instance (tests)."""
    global _config_instance
    _config_instance = None
