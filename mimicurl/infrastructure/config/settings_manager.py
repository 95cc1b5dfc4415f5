"""
Settings manager for mimicurl.
Handles the YAML settings file and environment overrides.
"""
import os
import yaml
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass, field

from ..binary_store import DEFAULT_BASE_URL, MIN_BINARY_SIZE
from ..external.support_matrix import BROWSER_TARGETS, DEFAULT_RELEASE


CONFIG_ENV_VAR = "MIMICURL_CONFIG"
CACHE_DIR_ENV_VAR = "MIMICURL_CACHE_DIR"


@dataclass
class RequestDefaults:
    """Defaults applied to every request unless overridden."""
    browser: str = "chrome"
    version: Optional[str] = None
    timeout: Optional[float] = 30.0
    max_redirects: int = 10
    insecure_tls: bool = False
    extra_curl_args: List[str] = field(default_factory=list)


@dataclass
class Settings:
    """Engine settings."""
    cache_dir: Optional[str] = None
    release: str = DEFAULT_RELEASE
    download_base_url: str = DEFAULT_BASE_URL
    download_timeout: float = 300.0
    download_retries: int = 0
    min_binary_size: int = MIN_BINARY_SIZE
    use_system_binary: bool = False
    defaults: RequestDefaults = field(default_factory=RequestDefaults)


_TOP_LEVEL_KEYS = {
    'cache_dir': str, 'release': str, 'download_base_url': str, 'download_timeout': float,
    'download_retries': int, 'min_binary_size': int, 'use_system_binary': bool,
}
_DEFAULT_KEYS = {
    'browser': str, 'version': str, 'timeout': float, 'max_redirects': int,
    'insecure_tls': bool, 'extra_curl_args': list,
}


def _convert(key: str, value: Any, kind: type) -> Any:
    if value is None:
        return None
    if kind is bool:
        if isinstance(value, str):
            return value.strip().lower() in ('1', 'true', 'yes', 'on')
        return bool(value)
    if kind is list:
        if isinstance(value, str):
            return value.split()
        return [str(v) for v in value]
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"Setting '{key}' must be of type {kind.__name__}, got {value!r}") from None


class SettingsManager:
    """Manages mimicurl settings from a YAML file."""

    def __init__(self, config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ
        self.config_path = Path(config_path or self._environ.get(CONFIG_ENV_VAR) or "mimicurl.yaml")
        self._config_data = None

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file; a missing file means defaults."""
        if self._config_data is None:
            if self.config_path.exists():
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._config_data = yaml.safe_load(f) or {}
            else:
                self._config_data = {}
            if not isinstance(self._config_data, dict):
                raise ValueError(f"Settings file {self.config_path} must contain a mapping")

        return self._config_data

    def _save_config(self) -> None:
        """Persist the in-memory configuration back to the YAML file."""
        if self._config_data is None:
            return

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self._config_data, f, sort_keys=False, allow_unicode=True)

    def get_settings(self) -> Settings:
        """Build Settings from file values and environment overrides."""
        config = self._load_config()
        values = {
            key: _convert(key, config[key], kind)
            for key, kind in _TOP_LEVEL_KEYS.items() if config.get(key) is not None
        }
        if self._environ.get(CACHE_DIR_ENV_VAR):
            values['cache_dir'] = self._environ[CACHE_DIR_ENV_VAR]

        raw_defaults = config.get('defaults') or {}
        defaults = RequestDefaults(**{
            key: _convert(key, raw_defaults[key], kind)
            for key, kind in _DEFAULT_KEYS.items() if key in raw_defaults
        })
        return Settings(defaults=defaults, **values)

    def set_value(self, key: str, value: Any) -> None:
        """Update a top-level setting and persist it."""
        if key not in _TOP_LEVEL_KEYS:
            raise KeyError(f"Unknown setting '{key}'")
        config = self._load_config()
        config[key] = _convert(key, value, _TOP_LEVEL_KEYS[key])
        self._save_config()

    def set_default(self, key: str, value: Any) -> None:
        """Update a request default and persist it."""
        if key not in _DEFAULT_KEYS:
            raise KeyError(f"Unknown request default '{key}'")
        value = _convert(key, value, _DEFAULT_KEYS[key])
        if key == 'browser' and value not in BROWSER_TARGETS:
            raise ValueError(f"Unknown browser '{value}'. Supported: {', '.join(BROWSER_TARGETS)}")
        config = self._load_config()
        if not isinstance(config.get('defaults'), dict):
            config['defaults'] = {}
        config['defaults'][key] = value
        self._save_config()


__all__ = ["SettingsManager", "Settings", "RequestDefaults"]
