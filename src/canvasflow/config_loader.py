"""Load FlowConfig from canvasflow.yaml / canvasflow.toml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from dataclasses import fields
from pathlib import Path

import yaml

from canvasflow._errors import ConfigError
from canvasflow.config import FlowConfig

_KNOWN_KEYS = frozenset(f.name for f in fields(FlowConfig)) - {"root"}


def load_config(root: Path, **overrides: object) -> FlowConfig:
    """Load FlowConfig from root, optionally merging a config file.

    Looks for canvasflow.yaml, canvasflow.yml, or canvasflow.toml in root.
    If found, loads and merges with overrides. Overrides take precedence.
    """
    file_config = _read_config_file(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    unknown = set(merged) - _KNOWN_KEYS
    if unknown:
        msg = f"Unknown config keys: {', '.join(sorted(unknown))}"
        raise ConfigError(msg)
    if "source" in merged and not isinstance(merged["source"], Path):
        merged["source"] = Path(str(merged["source"]))
    return FlowConfig(root=root, **merged)


def _read_config_file(root: Path) -> dict[str, object]:
    """Read config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("canvasflow.yaml", "canvasflow.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "canvasflow.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_section(data, path)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_section(data, path)


def _flatten_section(data: object, path: Path) -> dict[str, object]:
    """Extract canvasflow.* keys into top-level config."""
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping"
        raise ConfigError(msg)
    result: dict[str, object] = {}
    section = data.get("canvasflow")
    if isinstance(section, dict):
        result.update(section)
    for key, value in data.items():
        if key != "canvasflow" and key in _KNOWN_KEYS:
            result[key] = value
    return result
