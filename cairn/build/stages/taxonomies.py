"""
Taxonomy and generated listing pages.
"""

from __future__ import annotations

from cairn.build.context import HOME, PAGE, SECTION, TERM, VOCABULARY, Page, slugify
from cairn.build.stages.base import Stage
from cairn.core.utils import log


def sort_by_date(pages: list[Page]) -> list[Page]:
    """Newest first; undated pages last, ordered by id."""
    dated = [p for p in pages if p.date is not None]
    undated = [p for p in pages if p.date is None]
    dated.sort(key=lambda p: (str(p.date), p.id), reverse=True)
    undated.sort(key=lambda p: p.id)
    return dated + undated


class CreateTaxonomies(Stage):
    """Builds vocabulary -> term -> pages from front matter lists.

    The configured ``taxonomies`` map a plural vocabulary name (the front
    matter key, e.g. ``tags``) to its singular form.
    """

    name = "Creating taxonomies"

    def can_process(self) -> bool:
        return bool(self.config.taxonomies)

    def process(self) -> None:
        taxonomies: dict[str, dict[str, list[Page]]] = {}
        for vocabulary in self.config.taxonomies:
            terms: dict[str, list[Page]] = {}
            for page in self.context.pages:
                values = page.variables.get(vocabulary)
                if values is None:
                    continue
                if isinstance(values, str):
                    values = [values]
                for term in values:
                    terms.setdefault(str(term), []).append(page)
            taxonomies[vocabulary] = {term: terms[term] for term in sorted(terms)}
        self.context.taxonomies = taxonomies
        count = sum(len(terms) for terms in taxonomies.values())
        log.verbose(f"{count} term(s) in {len(taxonomies)} vocabular{'ies' if len(taxonomies) != 1 else 'y'}")


class GeneratePages(Stage):
    """Adds listing pages: terms, vocabularies, sections and the home page.

    A generated page never replaces a content page with the same id. Skipped
    when building a single page.
    """

    name = "Generating pages"

    def can_process(self) -> bool:
        return not self.options.page

    def _add(self, page: Page) -> bool:
        if self.context.find_page(page.id) is not None:
            return False
        self.context.pages.append(page)
        return True

    def process(self) -> None:
        regular = [p for p in self.context.pages if p.type == PAGE]
        generated = 0

        for vocabulary, terms in self.context.taxonomies.items():
            vocab_slug = slugify(vocabulary)
            for term, pages in terms.items():
                term_id = f"{vocab_slug}/{slugify(term)}"
                generated += self._add(Page(
                    id=term_id,
                    path=term_id,
                    title=term,
                    type=TERM,
                    pages=sort_by_date(pages),
                    variables={"vocabulary": vocabulary, "singular": self.config.taxonomies[vocabulary]},
                ))
            generated += self._add(Page(
                id=vocab_slug,
                path=vocab_slug,
                title=vocabulary.title(),
                type=VOCABULARY,
                terms=terms,
                variables={"vocabulary": vocabulary},
            ))

        sections: dict[str, list[Page]] = {}
        for page in regular:
            if page.section:
                sections.setdefault(page.section, []).append(page)
        for section, pages in sorted(sections.items()):
            listing = sort_by_date([p for p in pages if p.id != section])
            existing = self.context.find_page(section)
            if existing is not None:
                existing.pages = listing
                continue
            generated += self._add(Page(
                id=section,
                path=section,
                title=section.replace("-", " ").title(),
                type=SECTION,
                section=section,
                pages=listing,
            ))

        home = self.context.find_page("index")
        listing = sort_by_date([p for p in regular if p.id != "index"])
        if home is None:
            generated += self._add(Page(
                id="index",
                path="",
                title=self.config.title or "Home",
                type=HOME,
                pages=listing,
            ))
        else:
            home.pages = listing

        log.verbose(f"{generated} page(s) generated")
