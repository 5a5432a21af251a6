"""
Shared state handed from stage to stage during a build.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from cairn.build.options import BuildOptions
from cairn.config import MenuEntry, SiteConfig

# Page types
PAGE = "page"
HOME = "home"
SECTION = "section"
VOCABULARY = "vocabulary"
TERM = "term"


def slugify(value: str) -> str:
    """Lowercase, ASCII-ish URL segment."""
    slug = re.sub(r"[^\w]+", "-", str(value).strip().lower(), flags=re.UNICODE)
    return slug.strip("-_")


@dataclass
class Page:
    """A page of the site, either from a content file or generated."""

    id: str
    path: str
    title: str
    type: str = PAGE
    source: Optional[Path] = None
    body: str = ""
    date: Any = None
    draft: bool = False
    weight: int = 0
    section: str = ""
    layout: Optional[str] = None
    variables: dict[str, Any] = field(default_factory=dict)
    content: str = ""
    toc: str = ""
    pages: list["Page"] = field(default_factory=list)
    terms: dict[str, list["Page"]] = field(default_factory=dict)
    output: str = ""

    @property
    def url(self) -> str:
        return f"/{self.path}/" if self.path else "/"


@dataclass
class BuildContext:
    """Everything the stages of one run read and write."""

    root: Path
    config: SiteConfig
    options: BuildOptions
    version: str
    page_files: list[Path] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    static_files: list[Path] = field(default_factory=list)
    pages: list[Page] = field(default_factory=list)
    taxonomies: dict[str, dict[str, list[Page]]] = field(default_factory=dict)
    menus: dict[str, list[MenuEntry]] = field(default_factory=dict)
    assets: set[str] = field(default_factory=set)

    def dir(self, section: str) -> Path:
        return self.config.path(self.root, section)

    @property
    def output_dir(self) -> Path:
        return self.dir("output")

    def find_page(self, page_id: str) -> Optional[Page]:
        for page in self.pages:
            if page.id == page_id:
                return page
        return None

    def url(self, path: str) -> str:
        """Absolute URL of ``path`` under the configured base URL."""
        base = self.config.baseurl.rstrip("/")
        return f"{base}/{path.lstrip('/')}"
