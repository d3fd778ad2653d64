"""
Configuration file loading.

A project is configured by ``strata.yaml`` at its root, optionally overlaid
by ``strata.<env>.yaml``::

    project:
      warehouse: duckdb
      default_schema: analytics
      schema_suffix: "{env}"
    connection:
      type: duckdb
      path: warehouse.duckdb
    logging:
      level: INFO
    actions:
      - name: orders
        type: table
        query: select * from raw.orders

Action declarations may also live in YAML files under ``definitions/``,
each holding a list of declarations.
"""

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from strata.config.resolver import resolve_config
from strata.exceptions import ConfigurationError

CONFIG_FILE = "strata.yaml"
DEFINITIONS_DIR = "definitions"


class Config:
    """strata configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any], env: str = "dev"):
        self.data = data
        self.env = env
        self.project = data.get("project", {})
        self.connection = data.get("connection", {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value = self.data
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if "." in key:
            value = self.get(key)
            if value is None:
                raise KeyError(f"Config key '{key}' not found")
            return value
        if key in self.data:
            value = self.data[key]
            if isinstance(value, dict):
                return Config(value, self.env)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        value = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return False
            value = value[k]
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def keys(self):
        return self.data.keys()

    def items(self):
        return self.data.items()

    def validate(self) -> None:
        """Validate configuration structure."""
        errors = []
        for section in ("project", "connection", "logging"):
            value = self.data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"Configuration '{section}' must be a mapping, got {type(value).__name__}")
        actions = self.data.get("actions")
        if actions is not None and not isinstance(actions, list):
            errors.append(f"Configuration 'actions' must be a list, got {type(actions).__name__}")
        if errors:
            raise ConfigurationError("Invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors))


def _read_yaml(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        location = f" at line {mark.line + 1}, column {mark.column + 1}" if mark else ""
        raise ConfigurationError(
            f"Error parsing {path.name}{location}: {e}",
            details={"file": str(path)},
        ) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", details={"file": str(path)}) from e


def load_config(project_path: Path | str | None = None, env: str | None = None) -> Config:
    """
    Load strata configuration.

    Args:
        project_path: Path to project root (default: current directory)
        env: Environment name (default: STRATA_ENV or "dev")

    Returns:
        Config instance with merged, resolved configuration

    Raises:
        ConfigurationError: If the file is missing or not valid YAML
    """
    project_path = Path(project_path) if project_path is not None else Path.cwd()
    env = env or os.getenv("STRATA_ENV", "dev")

    base_config_path = project_path / CONFIG_FILE
    if not base_config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {base_config_path}",
            details={"suggestion": f"Create a {CONFIG_FILE} file in your project root"},
        )

    config_data = _read_yaml(base_config_path) or {}
    if not isinstance(config_data, dict):
        raise ConfigurationError(f"{CONFIG_FILE} must contain a mapping, got {type(config_data).__name__}")

    env_config_path = project_path / f"strata.{env}.yaml"
    if env_config_path.is_file():
        env_data = _read_yaml(env_config_path) or {}
        # Env overrides base
        _merge_dict(config_data, env_data)

    config = Config(resolve_config(config_data, env), env)
    config.validate()
    return config


def load_declarations(config: Config, project_path: Path | str | None = None) -> list[dict[str, Any]]:
    """
    Collect raw action declarations from the config and ``definitions/*.yaml``.

    Declarations read from a definitions file get that file as their
    ``file_name`` unless they set one.
    """
    project_path = Path(project_path) if project_path is not None else Path.cwd()
    declarations = [dict(d) for d in config.get("actions", []) or []]
    for declaration in declarations:
        declaration.setdefault("file_name", CONFIG_FILE)

    definitions = project_path / DEFINITIONS_DIR
    if definitions.is_dir():
        for path in sorted(definitions.glob("*.y*ml")):
            data = resolve_config(_read_yaml(path) or [], config.env)
            if not isinstance(data, list):
                raise ConfigurationError(f"{path.name} must contain a list of actions", details={"file": str(path)})
            relative = str(path.relative_to(project_path))
            for declaration in data:
                if not isinstance(declaration, dict):
                    raise ConfigurationError(
                        f"{path.name}: each action must be a mapping, got {type(declaration).__name__}",
                        details={"file": str(path)},
                    )
                declarations.append({"file_name": relative, **declaration})
    return declarations


def _merge_dict(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
