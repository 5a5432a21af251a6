"""
Menu stage.
"""

from __future__ import annotations

from typing import Any

from cairn.build.context import Page
from cairn.build.stages.base import Stage
from cairn.config import MenuEntry


def _page_menus(page: Page) -> dict[str, dict[str, Any]]:
    """Normalize a page's ``menu`` front matter to ``{menu: overrides}``.

    Accepts ``menu: main``, ``menu: [main, footer]`` or
    ``menu: {main: {weight: 10}}``.
    """
    value = page.variables.get("menu")
    if not value:
        return {}
    if isinstance(value, str):
        return {value: {}}
    if isinstance(value, list):
        return {str(name): {} for name in value}
    if isinstance(value, dict):
        return {str(name): (opts or {}) for name, opts in value.items()}
    return {}


class CreateMenus(Stage):
    """Merges configured menu entries with pages declaring ``menu:``.

    Entries are sorted by weight, then name. A page entry is dropped when an
    entry with the same id is already configured.
    """

    name = "Creating menus"

    def process(self) -> None:
        menus: dict[str, list[MenuEntry]] = {
            name: list(entries) for name, entries in self.config.menus.items()
        }

        for page in self.context.pages:
            for menu, overrides in _page_menus(page).items():
                entries = menus.setdefault(menu, [])
                if any(e.id == page.id for e in entries):
                    continue
                entries.append(MenuEntry(
                    id=page.id,
                    name=str(overrides.get("name", page.title)),
                    url=self.context.url(page.url),
                    weight=int(overrides.get("weight", page.weight)),
                ))

        self.context.menus = {
            name: sorted(entries, key=lambda e: (e.weight, e.name))
            for name, entries in menus.items()
        }
