"""
Content stages: load Markdown files, create pages, convert to HTML.
"""

from __future__ import annotations

import frontmatter
import markdown

from cairn.build.context import PAGE, Page
from cairn.build.stages.base import Stage, iter_files
from cairn.core.utils import log

MARKDOWN_SUFFIXES = (".md", ".markdown")
MARKDOWN_EXTENSIONS = ["extra", "toc"]


class LoadPages(Stage):
    """Collects Markdown files under the content directory."""

    name = "Loading pages"

    def can_process(self) -> bool:
        return self.context.dir("content").is_dir()

    def process(self) -> None:
        content_dir = self.context.dir("content")
        self.context.page_files = list(iter_files(content_dir, MARKDOWN_SUFFIXES))
        log.verbose(f"{len(self.context.page_files)} file(s) found in {content_dir}")


def page_id(relative: str) -> str:
    """Page id from a content path without suffix: ``blog/index`` -> ``blog``."""
    if relative == "index":
        return "index"
    if relative.endswith("/index"):
        return relative[: -len("/index")]
    return relative


class CreatePages(Stage):
    """Parses front matter into :class:`Page` objects.

    Drafts are skipped unless requested; with a page filter only the page
    with that id is kept, and it is an error for it to be missing.
    """

    name = "Creating pages"

    def can_process(self) -> bool:
        return self.context.dir("content").is_dir() or bool(self.options.page)

    def process(self) -> None:
        content_dir = self.context.dir("content")
        drafts = 0

        for file in self.context.page_files:
            relative = file.relative_to(content_dir).with_suffix("").as_posix()
            pid = page_id(relative)
            if self.options.page and pid != self.options.page:
                continue

            post = frontmatter.load(file)
            variables = dict(post.metadata)
            if variables.get("draft", False) and not self.options.drafts:
                drafts += 1
                continue

            parts = pid.split("/")
            page = Page(
                id=pid,
                path="" if pid == "index" else variables.get("path", pid).strip("/"),
                title=str(variables.get("title") or parts[-1].replace("-", " ").title()),
                type=PAGE,
                source=file,
                body=post.content,
                date=variables.get("date"),
                draft=bool(variables.get("draft", False)),
                weight=int(variables.get("weight", 0)),
                section=parts[0] if len(parts) > 1 else "",
                layout=variables.get("layout"),
                variables=variables,
            )
            self.context.pages.append(page)

        if self.options.page and not self.context.pages:
            raise ValueError(f'Page "{self.options.page}" not found')
        if drafts:
            log.verbose(f"{drafts} draft(s) skipped")
        log.verbose(f"{len(self.context.pages)} page(s) created")


class ConvertPages(Stage):
    """Converts Markdown bodies to HTML."""

    name = "Converting pages"

    def process(self) -> None:
        md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
        for page in self.context.pages:
            if page.source is None:
                continue
            page.content = md.reset().convert(page.body)
            page.toc = getattr(md, "toc", "")
