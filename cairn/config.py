"""
Site configuration for cairn.

Loads ``cairn.yml`` from the site root, deep-merges any extra files given on
the command line over it, and validates the result with pydantic models.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cairn.core.errors import ConfigError

CONFIG_FILENAME = "cairn.yml"


# =============================================================================
# Models
# =============================================================================


class DirSetting(BaseModel):
    """A ``<section>.dir`` entry, relative to the site root."""

    dir: str


class Toggle(BaseModel):
    enabled: bool = True


class OptimizeSettings(BaseModel):
    """Post-processing of the output tree."""

    enabled: bool = False
    html: Toggle = Field(default_factory=Toggle)
    css: Toggle = Field(default_factory=Toggle)
    js: Toggle = Field(default_factory=Toggle)
    images: Toggle = Field(default_factory=Toggle)


class HeaderEntry(BaseModel):
    """One response header served by the dev router."""

    key: str
    value: str


class HeaderRule(BaseModel):
    """Response headers applied to requests matching ``path`` (glob)."""

    path: str
    headers: List[HeaderEntry] = Field(default_factory=list)


class MenuEntry(BaseModel):
    """A navigation menu entry."""

    id: Optional[str] = None
    name: str
    url: str = ""
    weight: int = 0


class SiteConfig(BaseModel):
    """Validated site configuration.

    Unknown top-level keys are kept (they are exposed to templates through
    ``site``) and reachable with :meth:`get`.
    """

    model_config = ConfigDict(extra="allow")

    title: str = ""
    baseurl: str = ""
    output: DirSetting = Field(default_factory=lambda: DirSetting(dir="_site"))
    content: DirSetting = Field(default_factory=lambda: DirSetting(dir="content"))
    data: DirSetting = Field(default_factory=lambda: DirSetting(dir="data"))
    static: DirSetting = Field(default_factory=lambda: DirSetting(dir="static"))
    layouts: DirSetting = Field(default_factory=lambda: DirSetting(dir="layouts"))
    assets: DirSetting = Field(default_factory=lambda: DirSetting(dir="assets"))
    cache: DirSetting = Field(default_factory=lambda: DirSetting(dir=".cache"))
    taxonomies: Dict[str, str] = Field(
        default_factory=lambda: {"tags": "tag", "categories": "category"}
    )
    menus: Dict[str, List[MenuEntry]] = Field(default_factory=dict)
    headers: List[HeaderRule] = Field(default_factory=list)
    optimize: OptimizeSettings = Field(default_factory=OptimizeSettings)
    debug: bool = False

    def get(self, key: str, default: Any = None) -> Any:
        """Dotted lookup over the configuration, e.g. ``get("output.dir")``."""
        node: Any = self.model_dump()
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def path(self, root: Path, section: str) -> Path:
        """Absolute path of a ``<section>.dir`` setting."""
        return (root / self.get(f"{section}.dir")).resolve()


# =============================================================================
# Loading
# =============================================================================


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge ``override`` into a copy of ``base``.

    Mappings are merged key by key; any other value in ``override`` replaces
    the value in ``base``.
    """
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return data


def split_config_files(value: Optional[str]) -> list[str]:
    """Split a ``--config a.yml,b.yml`` value into file names."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def load_config(root: Path, extra_files: Sequence[str] = ()) -> SiteConfig:
    """Load and validate the configuration of the site at ``root``.

    Raises:
        ConfigError: If a file is missing, unreadable or invalid.
    """
    data: dict = {}
    default_file = root / CONFIG_FILENAME
    if default_file.is_file():
        data = _read_yaml(default_file)

    for name in extra_files:
        path = Path(name)
        if not path.is_absolute():
            path = root / path
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
        data = deep_merge(data, _read_yaml(path))

    try:
        return SiteConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{e}") from e


def config_warnings(config: SiteConfig) -> list[str]:
    """Non-fatal configuration problems reported at build start."""
    warnings = []
    if not config.baseurl:
        warnings.append("`baseurl` configuration key is required in production.")
    return warnings
