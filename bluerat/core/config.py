"""Loading and validation of the YAML configuration file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators
from rich.color import Color, ColorParseError

from bluerat.core.errors import ConfigLoadError, ConfigValidationError

PROJECT_NAME = "bluerat"
CONFIG_FILE = "config.yaml"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Theme:
    fg_connected_color: str = "bright_green"
    fg_header_color: str = "cyan"
    fg_selected_color: str = "white"
    fg_normal_color: str = "white"
    fg_new_device_color: str = "yellow"

    bg_connected_color: str = "default"
    bg_header_color: str = "default"
    bg_selected_color: str = "bright_black"
    bg_normal_color: str = "default"
    bg_new_device_color: str = "default"

    border_color: str = "blue"
    borders: bool = True
    rounded_borders: bool = False
    column_spacing: int = 4
    scrollbars: bool = False
    date_format: str = "%Y-%m-%d"


@dataclass(frozen=True)
class Config:
    theme: Theme = field(default_factory=Theme)


def config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / PROJECT_NAME / CONFIG_FILE


def _load_schema_validator() -> Any:
    schema_text = resources.files("bluerat.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _check_color(value: str, *, context: str) -> str:
    try:
        Color.parse(value)
    except ColorParseError as exc:
        raise ConfigValidationError(f"{context} is not a valid color: {exc}") from exc
    return value


def build_config(doc: dict[str, Any], source: Path | str = "<config>") -> Config:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    theme_doc = doc.get("theme") or {}
    for f in fields(Theme):
        if f.name.endswith("_color") and f.name in theme_doc:
            _check_color(theme_doc[f.name], context=f"theme.{f.name}")
    return Config(theme=Theme(**theme_doc))


def load_config(path: Path | None = None) -> Config:
    """Read the config file once; a missing default file yields the defaults."""
    explicit = path is not None
    path = path or config_path()
    if not path.exists():
        if explicit:
            raise ConfigLoadError(f"Config file {path} does not exist")
        LOGGER.debug("No config file at %s, using defaults", path)
        return Config()

    config = build_config(_read_yaml(path), path)
    LOGGER.info("Loaded config from %s", path)
    return config
