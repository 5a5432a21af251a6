"""
Rendering stages: Jinja2 templates to HTML, then pages to disk.
"""

from __future__ import annotations

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemBytecodeCache,
    FileSystemLoader,
    select_autoescape,
)

from cairn.build.context import Page, slugify
from cairn.build.stages.base import Stage
from cairn.core.utils import RESOURCES_DIR, log

DEFAULT_LAYOUTS_DIR = RESOURCES_DIR / "layouts"
DEFAULT_LAYOUT = "default.html"
TEMPLATE_CACHE = "templates"


class RenderPages(Stage):
    """Renders every page through its layout.

    Layouts are looked up in the site's layouts directory first, then in the
    bundled defaults. A page uses its ``layout`` front matter, else
    ``<type>.html``, else ``default.html``.
    """

    name = "Rendering pages"

    def _environment(self) -> Environment:
        bytecode_cache = None
        if not self.options.dry_run:
            cache_dir = self.context.dir("cache") / TEMPLATE_CACHE
            cache_dir.mkdir(parents=True, exist_ok=True)
            bytecode_cache = FileSystemBytecodeCache(str(cache_dir))

        env = Environment(
            loader=ChoiceLoader([
                FileSystemLoader(str(self.context.dir("layouts"))),
                FileSystemLoader(str(DEFAULT_LAYOUTS_DIR)),
            ]),
            autoescape=select_autoescape(["html", "xml"]),
            bytecode_cache=bytecode_cache,
        )
        env.globals.update(
            site=self.config.model_dump(),
            data=self.context.data,
            menus=self.context.menus,
            taxonomies=self.context.taxonomies,
            cairn_version=self.context.version,
            url=self.context.url,
            asset=self._asset,
        )
        env.filters["slug"] = slugify
        return env

    def _asset(self, path: str) -> str:
        """Template helper: register an asset for saving and return its URL."""
        self.context.assets.add(path.lstrip("/"))
        return self.context.url(path)

    def _templates(self, page: Page) -> list[str]:
        names = []
        if page.layout:
            names.append(page.layout)
        names.append(f"{page.type}.html")
        names.append(DEFAULT_LAYOUT)
        return names

    def process(self) -> None:
        env = self._environment()
        for page in self.context.pages:
            template = env.select_template(self._templates(page))
            log.debug(f"{page.id} -> {template.name}")
            page.output = template.render(page=page)


class SavePages(Stage):
    """Writes rendered pages to ``<output>/<path>/index.html``."""

    name = "Saving pages"

    def can_process(self) -> bool:
        return not self.options.dry_run

    def process(self) -> None:
        output_dir = self.context.output_dir
        for page in self.context.pages:
            target = output_dir / page.path / "index.html" if page.path else output_dir / "index.html"
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(page.output, encoding="utf-8")
        log.verbose(f"{len(self.context.pages)} page(s) saved to {output_dir}")
