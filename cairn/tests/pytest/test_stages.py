"""
Tests for the concrete build stages, run through the real pipeline.
"""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from cairn.build.context import HOME, SECTION, TERM, VOCABULARY
from cairn.build.options import BuildOptions, parse_clear_cache, parse_optimize
from cairn.build.orchestrator import Pipeline
from cairn.build.stages.content import page_id
from cairn.build.stages.optimize import minify_css, minify_html, minify_js
from cairn.config import load_config

from .conftest import write_file


def build(site: Path, options: BuildOptions | None = None) -> Pipeline:
    pipeline = Pipeline(site, load_config(site), "9.9.9")
    pipeline.run(options or BuildOptions())
    return pipeline


# =============================================================================
# Content
# =============================================================================


@pytest.mark.evergreen
class TestContentStages:
    """Loading, front matter parsing and Markdown conversion."""

    def test_page_ids(self) -> None:
        assert page_id("index") == "index"
        assert page_id("blog/index") == "blog"
        assert page_id("blog/first-post") == "blog/first-post"

    def test_drafts_skipped_by_default(self, site: Path) -> None:
        context = build(site).context
        ids = {p.id for p in context.pages}
        assert "blog/wip" not in ids
        assert "blog/first-post" in ids

    def test_drafts_included_on_request(self, site: Path) -> None:
        context = build(site, BuildOptions(drafts=True)).context
        assert context.find_page("blog/wip") is not None

    def test_markdown_converted(self, site: Path) -> None:
        page = build(site).context.find_page("blog/first-post")
        assert page.title == "First Post"
        assert page.section == "blog"
        assert '<h1 id="heading">Heading</h1>' in page.content
        assert "<p>First post body.</p>" in page.content

    def test_single_page_filter(self, site: Path) -> None:
        context = build(site, BuildOptions(page="about")).context
        assert [p.id for p in context.pages] == ["about"]

    def test_single_page_filter_unknown_page(self, site: Path) -> None:
        from cairn.core.errors import BuildError

        with pytest.raises(BuildError) as excinfo:
            build(site, BuildOptions(page="missing"))
        assert excinfo.value.stage == "Creating pages"


@pytest.mark.evergreen
class TestDataAndStatic:
    def test_data_nested_by_path(self, site: Path) -> None:
        data = build(site).context.data
        assert data["team"]["members"] == [{"name": "Ada"}, {"name": "Linus"}]
        assert data["settings"] == {"theme": "dark"}

    def test_static_copied_hidden_skipped(self, site: Path) -> None:
        build(site)
        output = site / "_site"
        assert (output / "robots.txt").read_text() == "User-agent: *\n"
        assert not (output / ".hidden").exists()


# =============================================================================
# Taxonomies, Generated Pages, Menus
# =============================================================================


@pytest.mark.evergreen
class TestTaxonomiesAndMenus:
    def test_terms_collected(self, site: Path) -> None:
        taxonomies = build(site).context.taxonomies
        assert sorted(taxonomies["tags"]) == ["python", "web"]
        assert [p.id for p in taxonomies["tags"]["python"]] == ["blog/first-post", "blog/second-post"]

    def test_generated_pages(self, site: Path) -> None:
        context = build(site).context
        assert context.find_page("tags/python").type == TERM
        assert context.find_page("tags").type == VOCABULARY
        assert context.find_page("blog").type == SECTION

    def test_term_listing_newest_first(self, site: Path) -> None:
        term = build(site).context.find_page("tags/python")
        assert [p.id for p in term.pages] == ["blog/second-post", "blog/first-post"]

    def test_content_home_is_kept(self, site: Path) -> None:
        home = build(site).context.find_page("index")
        assert home.type != HOME
        assert home.title == "Welcome"
        assert home.pages

    def test_home_generated_when_missing(self, site: Path) -> None:
        (site / "content" / "index.md").unlink()
        home = build(site).context.find_page("index")
        assert home.type == HOME
        assert home.title == "Test Site"

    def test_no_generated_pages_for_single_page(self, site: Path) -> None:
        context = build(site, BuildOptions(page="blog/first-post")).context
        assert context.find_page("tags/python") is None

    def test_menu_sorted_by_weight(self, site: Path) -> None:
        menus = build(site).context.menus
        assert [e.name for e in menus["main"]] == ["Welcome", "About"]
        assert [e.weight for e in menus["main"]] == [0, 5]
        assert menus["main"][1].url == "https://example.com/about/"


# =============================================================================
# Rendering and Saving
# =============================================================================


@pytest.mark.evergreen
class TestRenderAndSave:
    def test_pages_saved_under_path(self, site: Path) -> None:
        build(site)
        output = site / "_site"
        assert (output / "index.html").is_file()
        assert (output / "about" / "index.html").is_file()
        assert (output / "blog" / "first-post" / "index.html").is_file()
        assert (output / "tags" / "python" / "index.html").is_file()

    def test_default_layout_used(self, site: Path) -> None:
        build(site)
        html = (site / "_site" / "blog" / "first-post" / "index.html").read_text()
        assert "<title>First Post - Test Site</title>" in html
        assert 'content="cairn 9.9.9"' in html

    def test_site_layout_overrides_default(self, site: Path) -> None:
        write_file(
            site / "layouts" / "default.html",
            "{{ page.title }}|{{ data.settings.theme }}|{{ url('x/') }}\n",
        )
        build(site)
        html = (site / "_site" / "about" / "index.html").read_text()
        assert html.strip() == "About|dark|https://example.com/x/"

    def test_asset_helper_copies_assets(self, site: Path) -> None:
        write_file(site / "assets" / "css" / "main.css", "body { color: red; }\n")
        write_file(site / "layouts" / "default.html", "<link href=\"{{ asset('css/main.css') }}\">\n")
        build(site)
        assert (site / "_site" / "css" / "main.css").is_file()

    def test_missing_asset_fails_saving_stage(self, site: Path) -> None:
        from cairn.core.errors import BuildError

        write_file(site / "layouts" / "default.html", "{{ asset('nope.css') }}\n")
        with pytest.raises(BuildError) as excinfo:
            build(site)
        assert excinfo.value.stage == "Saving assets"

    def test_dry_run_writes_nothing(self, site: Path) -> None:
        pipeline = build(site, BuildOptions(dry_run=True))
        assert not (site / "_site").exists()
        assert pipeline.context.find_page("about").output

    def test_template_bytecode_cache(self, site: Path) -> None:
        build(site)
        assert any((site / ".cache" / "templates").iterdir())


# =============================================================================
# Optimization
# =============================================================================


@pytest.mark.evergreen
class TestOptimization:
    def test_minify_html_keeps_pre(self) -> None:
        html = "<div>\n  <!-- note -->\n  <p>a</p>\n</div>\n<pre>  keep\n  this</pre>"
        assert minify_html(html) == "<div><p>a</p></div> <pre>  keep\n  this</pre>"

    def test_minify_css(self) -> None:
        css = "/* c */\nbody {\n  color: red;\n  margin: 0;\n}\n"
        assert minify_css(css) == "body{color:red;margin:0}"

    def test_minify_js(self) -> None:
        js = "// comment\nvar a = 1;\n\n  var b = 2;\n"
        assert minify_js(js) == "var a = 1;\nvar b = 2;"

    def test_optimizers_off_by_default(self, site: Path) -> None:
        build(site)
        html = (site / "_site" / "about" / "index.html").read_text()
        assert "\n  " in html

    def test_optimize_flag_minifies_html(self, site: Path) -> None:
        build(site, BuildOptions(optimize=True))
        html = (site / "_site" / "about" / "index.html").read_text()
        assert ">\n" not in html

    def test_image_optimized(self, site: Path) -> None:
        buf = io.BytesIO()
        Image.new("RGB", (64, 64), (200, 30, 30)).save(buf, format="PNG", compress_level=0)
        (site / "static" / "red.png").write_bytes(buf.getvalue())

        build(site, BuildOptions(optimize="images"))

        optimized = (site / "_site" / "red.png").read_bytes()
        assert len(optimized) < len(buf.getvalue())
        with Image.open(io.BytesIO(optimized)) as im:
            assert im.size == (64, 64)

    def test_animated_gif_keeps_frames(self, site: Path) -> None:
        frames = [Image.new("RGB", (32, 32), color) for color in ("red", "green", "blue", "white")]
        buf = io.BytesIO()
        frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
        (site / "static" / "spinner.gif").write_bytes(buf.getvalue())

        build(site, BuildOptions(optimize="images"))

        output = (site / "_site" / "spinner.gif").read_bytes()
        assert output == buf.getvalue()
        with Image.open(io.BytesIO(output)) as im:
            assert im.n_frames == 4

    def test_non_utf8_text_is_skipped(self, site: Path, capsys: pytest.CaptureFixture[str]) -> None:
        legacy = b"body {\n  color: red;\n}\n/* caf\xe9 */\n"
        (site / "static" / "legacy.css").write_bytes(legacy)
        write_file(site / "static" / "site.css", "body {\n  margin: 0;\n}\n")

        build(site, BuildOptions(optimize="css"))

        assert (site / "_site" / "legacy.css").read_bytes() == legacy
        assert (site / "_site" / "site.css").read_text() == "body{margin:0}"
        assert "Skipping legacy.css" in capsys.readouterr().out

    def test_optimizer_selection(self, site: Path) -> None:
        config = load_config(site)
        assert BuildOptions(optimize="html,css").optimizer_enabled("css", config)
        assert not BuildOptions(optimize="html,css").optimizer_enabled("js", config)
        assert not BuildOptions(optimize=False).optimizer_enabled("html", config)
        assert not BuildOptions().optimizer_enabled("html", config)

    def test_parse_command_line_values(self) -> None:
        assert parse_optimize(None) is None
        assert parse_optimize("yes") is True
        assert parse_optimize("no") is False
        assert parse_optimize("html,css") == "html,css"
        with pytest.raises(ValueError):
            parse_optimize("fonts")
        assert parse_clear_cache(None) is False
        assert parse_clear_cache("") is True
        assert parse_clear_cache("^tpl") == "^tpl"
