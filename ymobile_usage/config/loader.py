"""
Configuration management and loading.

Handles application settings read from a YAML file, with defaults for every
value so the tool runs without a config file.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..core.parser import PARSERS

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 13) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
CONFIG_ENV_VAR = "YMOBILE_USAGE_CONFIG"
DEFAULT_DATA_DIR = Path.home() / ".ymobile_usage"


class WidgetPlatform(Enum):
    """Native widget surface the bridge talks to."""
    IOS = "ios"
    ANDROID = "android"
    NONE = "none"


@dataclass(frozen=True)
class PortalSettings:
    """Endpoints and transport settings for the carrier portal."""
    login_entry_url: str = "https://my.ymobile.jp/muc/d/webLink/doSend/MWBWL0130"
    login_url: str = "https://id.my.ymobile.jp/sbid_auth/type1/2.0/login.php"
    data_entry_url: str = "https://my.ymobile.jp/muc/d/webLink/doSend/MRERE0000"
    data_url: str = "https://re61.my.ymobile.jp/resfe/top/"
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0
    layout: str = "v1"

    def __post_init__(self):
        """Validate timeout is positive."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class CacheSettings:
    """Usage cache time-to-live."""
    ttl_minutes: float = 15.0

    def __post_init__(self):
        """Validate ttl is positive."""
        if self.ttl_minutes <= 0:
            raise ValueError("ttl_minutes must be > 0")


@dataclass(frozen=True)
class StorageSettings:
    """Locations of the key-value database and the credential key file."""
    db_path: str = str(DEFAULT_DATA_DIR / "ymobile_usage.db")
    key_path: str = str(DEFAULT_DATA_DIR / "credentials.key")


@dataclass(frozen=True)
class LoggingSettings:
    """Log level and optional log file."""
    level: str = "INFO"
    file: Optional[str] = None

    def __post_init__(self):
        """Validate level name."""
        if self.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown logging level: {self.level}")


@dataclass(frozen=True)
class WidgetSettings:
    """Native widget surface selection."""
    platform: WidgetPlatform = WidgetPlatform.NONE


@dataclass(frozen=True)
class DisplaySettings:
    """Rendering of the human-readable capture timestamp."""
    timestamp_format: str = "%Y/%m/%d %H:%M:%S"


@dataclass(frozen=True)
class AppSettings:
    """Complete application settings."""
    portal: PortalSettings = field(default_factory=PortalSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    widget: WidgetSettings = field(default_factory=WidgetSettings)
    display: DisplaySettings = field(default_factory=DisplaySettings)


_SECTION_KEYS = {
    'portal': {'login_entry_url', 'login_url', 'data_entry_url', 'data_url',
               'user_agent', 'timeout_seconds', 'layout'},
    'cache': {'ttl_minutes'},
    'storage': {'db_path', 'key_path'},
    'logging': {'level', 'file'},
    'widget': {'platform'},
    'display': {'timestamp_format'},
}


def load_settings(path: Optional[str] = None) -> AppSettings:
    """Load and validate settings from a YAML file.

    Strict validation rejects unknown keys so a typo never silently falls
    back to a default endpoint or timeout.

    Args:
        path: Path to YAML configuration file, or None for defaults

    Returns:
        Validated AppSettings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return AppSettings()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        return AppSettings()

    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    unknown_keys = set(raw_config.keys()) - set(_SECTION_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {name: _section(raw_config, name) for name in _SECTION_KEYS}

    portal = sections['portal']
    if 'timeout_seconds' in portal:
        portal['timeout_seconds'] = _positive_number(portal['timeout_seconds'], 'portal.timeout_seconds')
    for key in ('login_entry_url', 'login_url', 'data_entry_url', 'data_url'):
        if key in portal and not str(portal[key]).startswith(('http://', 'https://')):
            raise ValueError(f"'portal.{key}' must be an http(s) URL")

    if 'layout' in portal and (not isinstance(portal['layout'], str) or portal['layout'] not in PARSERS):
        raise ValueError(f"'portal.layout' must be one of: {sorted(PARSERS)}")

    cache = sections['cache']
    if 'ttl_minutes' in cache:
        cache['ttl_minutes'] = _positive_number(cache['ttl_minutes'], 'cache.ttl_minutes')

    widget = sections['widget']
    if 'platform' in widget:
        widget['platform'] = _parse_platform(widget['platform'])

    return AppSettings(
        portal=PortalSettings(**portal),
        cache=CacheSettings(**cache),
        storage=StorageSettings(**{k: str(v) for k, v in sections['storage'].items()}),
        logging=LoggingSettings(**sections['logging']),
        widget=WidgetSettings(**widget),
        display=DisplaySettings(**sections['display']),
    )


def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Extract one section and reject keys it does not define."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - _SECTION_KEYS[name]
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return dict(data)


def _positive_number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"'{path}' must be a number > 0")
    return float(value)


def _parse_platform(value: Any) -> WidgetPlatform:
    if not isinstance(value, str):
        raise ValueError("'widget.platform' must be a string")
    try:
        return WidgetPlatform(value.lower())
    except ValueError:
        valid = [platform.value for platform in WidgetPlatform]
        raise ValueError(f"'widget.platform' must be one of: {valid}")
