"""
Configuration management for kjob.

Loads and validates the optional config.yaml file. Every key has a default,
so a missing default config file is not an error.
"""

import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin

import yaml


DEFAULT_KUBECONFIG = "~/.kube/config"


class ConfigError(Exception):
    """Configuration validation error."""
    pass


def get_kjob_home() -> Path:
    """Return the kjob home directory ($KJOB_HOME or ~/.config/kjob)."""
    return Path(os.environ.get("KJOB_HOME", "~/.config/kjob")).expanduser()


def _checked(cls, values: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Check each value against its dataclass field type.

    Whole numbers are accepted for float fields. Nested dataclass fields are
    left to the caller.

    Raises:
        ConfigError: On the first value of the wrong type
    """
    checked = dict(values)
    for f in fields(cls):
        if f.name not in values or is_dataclass(f.type):
            continue
        value = values[f.name]
        expected = f.type
        if get_origin(expected) is Union:
            if value is None and type(None) in get_args(expected):
                continue
            expected = next(a for a in get_args(expected) if a is not type(None))

        # bool is a subclass of int
        if isinstance(value, bool) and expected is not bool:
            valid = False
        elif expected is float:
            valid = isinstance(value, (int, float))
        else:
            valid = isinstance(value, expected)
        if not valid:
            raise ConfigError(
                f"{prefix}{f.name}: expected {expected.__name__}, "
                f"got {type(value).__name__} ({value!r})"
            )
        checked[f.name] = float(value) if expected is float else value
    return checked


@dataclass
class LoggingConfig:
    """Runner log settings."""

    level: str = "INFO"
    format: str = "pretty"
    console: bool = True

    def validate(self) -> None:
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ConfigError(f"logging.level: unknown level '{self.level}'")
        if self.format not in ("pretty", "structured"):
            raise ConfigError(
                f"logging.format: must be 'pretty' or 'structured', got '{self.format}'"
            )


@dataclass
class RunnerConfig:
    """Complete runner configuration."""

    kubeconfig: Optional[str] = None
    kubectl: str = "kubectl"
    poll_interval_seconds: float = 30.0
    soft_failure_budget: int = 3
    query_timeout_seconds: float = 20.0
    ready_timeout_seconds: float = 300.0
    pod_running_timeout: str = "30s"
    all_containers: bool = True
    capture_failure_warn_after: int = 3
    capture_stop_timeout_seconds: float = 10.0
    logs_dir: str = "logs"
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunnerConfig":
        """
        Build a config from a parsed YAML mapping.

        Raises:
            ConfigError: If the mapping has unknown keys or bad values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(k) for k in set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        values = _checked(cls, data)
        logging_data = values.pop("logging", None) or {}
        if not isinstance(logging_data, dict):
            raise ConfigError("logging: expected a mapping")
        try:
            logging_config = LoggingConfig(**_checked(LoggingConfig, logging_data, "logging."))
        except TypeError as e:
            raise ConfigError(f"logging: {e}")

        config = cls(logging=logging_config, **values)
        config.validate()
        return config

    def resolve_kubeconfig(self) -> Path:
        """
        Resolve the kubeconfig path.

        Order: config file value, then $KUBECONFIG (first entry), then
        ~/.kube/config.
        """
        if self.kubeconfig:
            return Path(self.kubeconfig).expanduser()
        env_value = os.environ.get("KUBECONFIG")
        if env_value:
            return Path(env_value.split(os.pathsep)[0]).expanduser()
        return Path(DEFAULT_KUBECONFIG).expanduser()

    def validate(self) -> None:
        """Validate value ranges."""
        if self.poll_interval_seconds < 0:
            raise ConfigError("poll_interval_seconds must be >= 0")
        if self.soft_failure_budget < 1:
            raise ConfigError("soft_failure_budget must be >= 1")
        if self.query_timeout_seconds <= 0:
            raise ConfigError("query_timeout_seconds must be > 0")
        if self.ready_timeout_seconds <= 0:
            raise ConfigError("ready_timeout_seconds must be > 0")
        if self.capture_failure_warn_after < 1:
            raise ConfigError("capture_failure_warn_after must be >= 1")
        if not self.kubectl:
            raise ConfigError("kubectl must name an executable")
        self.logging.validate()


def load_config(config_path: Optional[Path] = None) -> RunnerConfig:
    """
    Load runner configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to $KJOB_HOME/config.yaml,
            which may be absent.

    Returns:
        RunnerConfig instance

    Raises:
        ConfigError: If an explicit config file is missing, or any config
            file is invalid
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = get_kjob_home() / "config.yaml"

    config_path = Path(config_path)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {config_path}")
        return RunnerConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")

    if data is None:
        return RunnerConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: expected a mapping at the top level")

    return RunnerConfig.from_dict(data)
