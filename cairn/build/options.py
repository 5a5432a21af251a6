"""
Per-run build options.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from cairn.config import SiteConfig
from cairn.core.utils import VERBOSITY_NORMAL

OPTIMIZERS = ("html", "css", "js", "images")

_YES = {"", "yes", "true", "1", "on"}
_NO = {"no", "false", "0", "off"}


@dataclass(frozen=True)
class BuildOptions:
    """Knobs for a single build run. Immutable once the run starts.

    ``optimize`` is ``None`` to follow the site configuration, a bool to
    force every optimizer on or off, or a comma list of optimizer names.
    ``clear_cache`` is ``False``, ``True`` (clear everything) or a regular
    expression matched against cache entry paths.
    """

    drafts: bool = False
    dry_run: bool = False
    page: Optional[str] = None
    optimize: Union[None, bool, str] = None
    clear_cache: Union[bool, str] = False
    verbosity: int = VERBOSITY_NORMAL

    def optimizer_enabled(self, name: str, config: SiteConfig) -> bool:
        """Whether optimizer ``name`` runs for this build."""
        settings = config.optimize
        toggle = getattr(settings, name)
        if self.optimize is None:
            return settings.enabled and toggle.enabled
        if isinstance(self.optimize, bool):
            return self.optimize and toggle.enabled
        selected = {part.strip() for part in self.optimize.split(",")}
        return name in selected


def parse_optimize(value: Optional[str]) -> Union[None, bool, str]:
    """Interpret an ``--optimize [MODE]`` command-line value."""
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _YES:
        return True
    if lowered in _NO:
        return False
    unknown = [p for p in lowered.split(",") if p.strip() not in OPTIMIZERS]
    if unknown:
        raise ValueError(
            f"Unknown optimizer(s): {', '.join(unknown)} (expected {', '.join(OPTIMIZERS)})"
        )
    return lowered


def parse_clear_cache(value: Optional[str]) -> Union[bool, str]:
    """Interpret a ``--clear-cache [PATTERN]`` command-line value."""
    if value is None:
        return False
    if value == "":
        return True
    return value
