"""
Configuration Management - YAML-based configuration with environment overrides
==============================================================================

This module handles:
- The fixed realm/node bindings and limit constants
- Loading from YAML files
- Environment variable overrides
- Configuration validation
"""

import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict, Optional, List
from dataclasses import dataclass, field, asdict

from .exceptions import ConfigError


# ---------------------------------------------------------------------------
# Static bindings and limits
# ---------------------------------------------------------------------------

STATIC_REALM_ID = "0x1f7a3b9e5c0d2e4f6a8b0c2d4e6f8a0b2c4d6e8f0a2b4c6d8e0f2a4b6c8d0e2f4"
STATIC_NODE_ADDRESSES = (
    "0x3c5e7a9b1d2f4a6c8e0b2d4f6a8c0e2b4d6f8a0c",
    "0x7e9a1c3d5f7b9d1e3a5c7e9b1d3f5a7c9e1b3d5f",
)

MAX_UTTERANCE_LEN = 512
MAX_SESSIONS_PER_REALM = 65536
MAX_REPLY_LEN = 1024
SESSION_TTL_SECONDS = 3600.0
RATE_LIMIT_UTTERANCES_PER_MIN = 60
RATE_WINDOW_SECONDS = 60.0

_HEX_ID = re.compile(r"0x[0-9a-fA-F]+")


@dataclass
class RealmConfig:
    """
    Realm and node bindings.

    These are fixed for the lifetime of the process. A realm id that
    differs from ``STATIC_REALM_ID`` passes validation but every session
    lookup will then fail with ``RealmMismatch``.
    """
    realm_id: str = STATIC_REALM_ID
    node_addresses: List[str] = field(default_factory=lambda: list(STATIC_NODE_ADDRESSES))

    def validate(self) -> None:
        """Validate realm configuration."""
        if not _HEX_ID.fullmatch(str(self.realm_id or "")):
            raise ConfigError(f"realm_id must be a 0x-prefixed hex string, got {self.realm_id!r}")

        for address in self.node_addresses:
            if not _HEX_ID.fullmatch(str(address)):
                raise ConfigError(f"Invalid node address: {address!r}")


@dataclass
class SessionConfig:
    """
    Session lifecycle configuration: capacity, idle TTL and per-session
    utterance rate.
    """
    max_sessions: int = MAX_SESSIONS_PER_REALM
    ttl_seconds: float = SESSION_TTL_SECONDS
    rate_limit_per_window: int = RATE_LIMIT_UTTERANCES_PER_MIN
    rate_window_seconds: float = RATE_WINDOW_SECONDS

    def validate(self) -> None:
        """Validate session configuration."""
        if self.max_sessions < 1:
            raise ConfigError("max_sessions must be at least 1")

        if self.ttl_seconds <= 0:
            raise ConfigError(f"ttl_seconds must be positive, got {self.ttl_seconds}")

        if self.rate_limit_per_window < 1:
            raise ConfigError("rate_limit_per_window must be at least 1")

        if self.rate_window_seconds <= 0:
            raise ConfigError(
                f"rate_window_seconds must be positive, got {self.rate_window_seconds}"
            )


@dataclass
class LimitsConfig:
    """Input and output length limits."""
    max_utterance_length: int = MAX_UTTERANCE_LEN
    max_reply_length: int = MAX_REPLY_LEN

    def validate(self) -> None:
        """Validate length limits."""
        if self.max_utterance_length < 1:
            raise ConfigError("max_utterance_length must be at least 1")

        if self.max_reply_length < 1:
            raise ConfigError("max_reply_length must be at least 1")


@dataclass
class RulesConfig:
    """
    Reply rule source.

    An empty ``rules_file`` means the built-in rule table is used.
    """
    rules_file: str = ""
    require_fallback: bool = True

    def validate(self) -> None:
        """Validate rules configuration."""
        if self.rules_file and Path(self.rules_file).suffix.lower() not in (".yaml", ".yml"):
            raise ConfigError(f"rules_file must be a YAML file, got {self.rules_file}")


@dataclass
class Config:
    """
    Main configuration container.

    Aggregates all configuration sections into a single object.
    """
    app_name: str = "Static Chatter"
    version: str = "1.0.0"
    debug: bool = False

    realm: RealmConfig = field(default_factory=RealmConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)

    # Paths (set at runtime)
    config_dir: str = ""
    data_dir: str = ""
    log_dir: str = ""

    def validate(self) -> None:
        """
        Validate all configuration sections.

        Raises:
            ConfigError: If any configuration section is invalid
        """
        self.realm.validate()
        self.session.validate()
        self.limits.validate()
        self.rules.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "app_name": self.app_name,
            "version": self.version,
            "debug": self.debug,
            "realm": asdict(self.realm),
            "session": asdict(self.session),
            "limits": asdict(self.limits),
            "rules": asdict(self.rules),
        }


_SECTIONS = ("realm", "session", "limits", "rules")


def get_default_config_dir() -> Path:
    """
    Get the default configuration directory path.

    Returns:
        Path to the configuration directory
    """
    if "STATIC_CHATTER_CONFIG_DIR" in os.environ:
        return Path(os.environ["STATIC_CHATTER_CONFIG_DIR"])

    if "XDG_CONFIG_HOME" in os.environ:
        return Path(os.environ["XDG_CONFIG_HOME"]) / "static-chatter"

    return Path.home() / ".config" / "static-chatter"


def get_default_data_dir() -> Path:
    """
    Get the default data directory path.

    Returns:
        Path to the data directory
    """
    if "STATIC_CHATTER_DATA_DIR" in os.environ:
        return Path(os.environ["STATIC_CHATTER_DATA_DIR"])

    if "XDG_DATA_HOME" in os.environ:
        return Path(os.environ["XDG_DATA_HOME"]) / "static-chatter"

    return Path.home() / ".local" / "share" / "static-chatter"


def load_config(config_path: Optional[str] = None, load_env: bool = True) -> Config:
    """
    Load configuration from YAML file with environment variable overrides.

    Values are applied in this order:
    1. Default values from the dataclasses
    2. Values from the YAML file
    3. Environment variable overrides (including a ``.env`` file in the
       config directory)

    Args:
        config_path: Path to configuration file (optional)
        load_env: Whether to load environment variable overrides

    Returns:
        Config object with loaded values

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    config = Config()

    config.config_dir = str(get_default_config_dir())
    config.data_dir = str(get_default_data_dir())
    config.log_dir = str(Path(config.data_dir) / "logs")

    if load_env:
        _load_env_file(Path(config.config_dir) / ".env")

    if config_path:
        yaml_path = Path(config_path)
        if not yaml_path.exists():
            raise ConfigError("Config file not found", {"path": str(yaml_path)})
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    if yaml_path.exists():
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}", {"path": str(yaml_path)})
        except IOError as e:
            raise ConfigError(f"Failed to read config file: {e}", {"path": str(yaml_path)})

        if not isinstance(yaml_config, dict):
            raise ConfigError("Config file must contain a mapping", {"path": str(yaml_path)})

        _apply_yaml_config(config, yaml_config)

    if load_env:
        _apply_env_overrides(config)

    config.validate()

    return config


def _load_env_file(env_file: Path) -> None:
    """Export KEY=VALUE lines from a .env file unless already set."""
    if not env_file.exists():
        return

    try:
        with open(env_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    if key and value and key not in os.environ:
                        os.environ[key] = value.strip()
    except IOError as e:
        raise ConfigError(f"Failed to read env file: {e}", {"path": str(env_file)})


def _apply_yaml_config(config: Config, yaml_config: Dict[str, Any]) -> None:
    """
    Apply YAML configuration values to Config object.

    Unknown keys are ignored.
    """
    for key in ("app_name", "version", "debug"):
        if key in yaml_config:
            setattr(config, key, yaml_config[key])

    for section in _SECTIONS:
        values = yaml_config.get(section)
        if not values:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")

        section_obj = getattr(config, section)
        for key, value in values.items():
            if hasattr(section_obj, key):
                setattr(section_obj, key, value)


def _apply_env_overrides(config: Config) -> None:
    """
    Apply environment variable overrides to Config object.

    Environment variables follow the pattern STATIC_CHATTER_SECTION_KEY,
    for example STATIC_CHATTER_SESSION_TTL_SECONDS.
    """
    env_mappings = {
        "STATIC_CHATTER_DEBUG": (None, "debug", bool),

        "STATIC_CHATTER_REALM_ID": ("realm", "realm_id"),

        "STATIC_CHATTER_SESSION_MAX_SESSIONS": ("session", "max_sessions", int),
        "STATIC_CHATTER_SESSION_TTL_SECONDS": ("session", "ttl_seconds", float),
        "STATIC_CHATTER_SESSION_RATE_LIMIT": ("session", "rate_limit_per_window", int),
        "STATIC_CHATTER_SESSION_RATE_WINDOW_SECONDS": ("session", "rate_window_seconds", float),

        "STATIC_CHATTER_LIMITS_MAX_UTTERANCE_LENGTH": ("limits", "max_utterance_length", int),
        "STATIC_CHATTER_LIMITS_MAX_REPLY_LENGTH": ("limits", "max_reply_length", int),

        "STATIC_CHATTER_RULES_FILE": ("rules", "rules_file"),
    }

    for env_var, mapping in env_mappings.items():
        value = os.environ.get(env_var)
        if value is None:
            continue

        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str
        target = getattr(config, section) if section else config

        if converter is bool:
            converted = value.lower() in ("true", "1", "yes", "on")
        else:
            try:
                converted = converter(value)
            except ValueError:
                raise ConfigError(f"Invalid value for {env_var}: {value!r}")

        setattr(target, key, converted)


def save_config(config: Config, config_path: Optional[str] = None) -> Path:
    """
    Save configuration to YAML file.

    Args:
        config: Config object to save
        config_path: Path to save configuration (optional)

    Returns:
        Path that was written

    Raises:
        ConfigError: If configuration cannot be saved
    """
    if config_path:
        yaml_path = Path(config_path)
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except IOError as e:
        raise ConfigError(f"Failed to save config file: {e}", {"path": str(yaml_path)})

    return yaml_path


def create_default_config(config_dir: Optional[str] = None) -> Config:
    """
    Create a default configuration file.

    Args:
        config_dir: Directory to create configuration in (optional)

    Returns:
        Config object with default values
    """
    config = Config()
    config.config_dir = config_dir or str(get_default_config_dir())
    config.data_dir = str(Path(config.config_dir) / "data") if config_dir else str(get_default_data_dir())
    config.log_dir = str(Path(config.data_dir) / "logs")

    Path(config.config_dir).mkdir(parents=True, exist_ok=True)
    Path(config.log_dir).mkdir(parents=True, exist_ok=True)

    save_config(config)

    return config
